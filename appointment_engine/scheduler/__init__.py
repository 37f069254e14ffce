"""Scheduler package - timers for the appointment maintenance jobs."""

from appointment_engine.scheduler.driver import Scheduler, ScheduledJob
from appointment_engine.scheduler.jobs import build_scheduler
from appointment_engine.scheduler.triggers import CronTrigger, IntervalTrigger

__all__ = ["Scheduler", "ScheduledJob", "build_scheduler", "CronTrigger", "IntervalTrigger"]
