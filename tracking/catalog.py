"""
Compiled-in app catalog.

Seeds the app list on first run and whenever the stored list cannot be read.
Usage numbers are sample data; no OS usage API is wired in.
"""

from typing import List

from core.models import AppRecord

DEFAULT_APPS = [
    {"id": "instagram", "name": "Instagram", "category": "Social", "usage_minutes": 87, "daily_limit": 60, "opens": 23, "notifications": 45, "is_short_form": True},
    {"id": "youtube", "name": "YouTube", "category": "Entertainment", "usage_minutes": 65, "daily_limit": 90, "opens": 12, "notifications": 8, "is_short_form": True},
    {"id": "twitter", "name": "X (Twitter)", "category": "Social", "usage_minutes": 42, "daily_limit": 45, "opens": 18, "notifications": 32, "is_short_form": False},
    {"id": "tiktok", "name": "TikTok", "category": "Social", "usage_minutes": 110, "daily_limit": 30, "opens": 8, "notifications": 15, "is_short_form": True},
    {"id": "whatsapp", "name": "WhatsApp", "category": "Communication", "usage_minutes": 35, "daily_limit": 120, "opens": 40, "notifications": 67, "is_short_form": False},
    {"id": "snapchat", "name": "Snapchat", "category": "Social", "usage_minutes": 28, "daily_limit": 30, "opens": 15, "notifications": 22, "is_short_form": True},
    {"id": "chrome", "name": "Chrome", "category": "Productivity", "usage_minutes": 55, "daily_limit": 0, "opens": 30, "notifications": 5, "is_short_form": False},
    {"id": "gmail", "name": "Gmail", "category": "Productivity", "usage_minutes": 18, "daily_limit": 0, "opens": 12, "notifications": 28, "is_short_form": False},
    {"id": "reddit", "name": "Reddit", "category": "Social", "usage_minutes": 48, "daily_limit": 45, "opens": 9, "notifications": 11, "is_short_form": False},
    {"id": "netflix", "name": "Netflix", "category": "Entertainment", "usage_minutes": 72, "daily_limit": 120, "opens": 3, "notifications": 2, "is_short_form": False},
]


def default_apps() -> List[AppRecord]:
    """Fresh AppRecord copies of the catalog."""
    return [AppRecord.from_dict(entry) for entry in DEFAULT_APPS]


def social_apps(apps: List[AppRecord]) -> List[AppRecord]:
    """Apps suggested for blocking during focus (social or short-form)."""
    return [a for a in apps if a.category == "Social" or a.is_short_form]
