"""
Page-number pagination where the client may set page_size.
Export-style pages (payments for a month, tenants per admin) ask for all rows at once.
"""
from rest_framework.pagination import PageNumberPagination


class FlexiblePageNumberPagination(PageNumberPagination):
    page_size = 25
    page_size_query_param = 'page_size'
    max_page_size = 1000
