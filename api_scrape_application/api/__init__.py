from .handlers import ApiResponse, CurrentUser, ScrapeApi

__all__ = ["ApiResponse", "CurrentUser", "ScrapeApi"]
