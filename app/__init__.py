"""Classroom metrics service.

Learning analytics aggregation over the hosted backend's performance metric
and learning activity rows, plus notifications, exposed through FastAPI.
"""
