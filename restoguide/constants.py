"""
Reference data: supported cities, categories, cuisines and filter values.
"""

from __future__ import annotations

CITIES = ["Минск", "Гродно", "Брест", "Гомель", "Витебск", "Могилев", "Бобруйск"]

CATEGORIES = [
    "Ресторан",
    "Кофейня",
    "Фаст-фуд",
    "Бар",
    "Кондитерская",
    "Пиццерия",
    "Пекарня",
    "Паб",
    "Столовая",
    "Кальянная",
    "Боулинг",
    "Караоке",
    "Бильярд",
]

CUISINES = [
    "Народная",
    "Авторская",
    "Азиатская",
    "Американская",
    "Вегетарианская",
    "Японская",
    "Грузинская",
    "Итальянская",
    "Смешанная",
    "Континентальная",
    "Европейская",
]

FEATURES = [
    "delivery",
    "wifi",
    "banquet",
    "terrace",
    "smoking_area",
    "kids_zone",
    "pet_friendly",
    "parking",
]

PRICE_RANGES = ["$", "$$", "$$$"]
HOURS_FILTERS = ["until_22", "until_morning", "24_hours"]

MAX_CATEGORIES = 2
MAX_CUISINES = 3

ROLES = ["user", "partner", "admin"]
AUTH_METHODS = ["email", "phone", "google", "yandex"]

STATUS_DRAFT = "draft"
STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_REJECTED = "rejected"
STATUS_SUSPENDED = "suspended"
STATUS_ARCHIVED = "archived"
STATUSES = [
    STATUS_DRAFT,
    STATUS_PENDING,
    STATUS_ACTIVE,
    STATUS_REJECTED,
    STATUS_SUSPENDED,
    STATUS_ARCHIVED,
]

WEEKDAYS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

# Distance options offered by the mobile filter sheet, in metres; None is "any".
DISTANCE_OPTIONS_M = [500, 1000, 3000, 5000, 10000, None]

MEDIA_TYPES = ["interior", "exterior", "menu", "dishes"]
