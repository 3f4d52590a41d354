from .schedule_feed import ScheduleFeedCollector, ScheduleFeedError, to_schedule_entries

__all__ = ["ScheduleFeedCollector", "ScheduleFeedError", "to_schedule_entries"]
