"""
Cursor pagination shared by list endpoints.
Devices page on created_at; verification records override the ordering
with verified_at (see verification.views).
"""
from rest_framework.pagination import CursorPagination


class DefaultCursorPagination(CursorPagination):
    page_size = 50
    ordering = '-created_at'
