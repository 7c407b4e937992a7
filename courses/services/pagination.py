from django.conf import settings
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from rest_framework.response import Response


def _int_param(request, name, default):
    try:
        return int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        return default


def paginate_queryset(request, queryset, serializer_class, message="Records retrieved successfully."):
    """
    Paginate ``queryset`` for a custom API endpoint.

    Reads ``page`` and ``page_size`` from the query string; ``page_size`` is
    capped at ``MAX_PAGE_SIZE``. Out-of-range pages fall back to the last
    page. The response uses the usual envelope plus paging fields:
    ``count``, ``next``, ``previous``, ``page_size``, ``current_page`` and
    ``total_pages``.
    """
    default_size = getattr(settings, "DEFAULT_PAGE_SIZE", 20)
    page_size = _int_param(request, "page_size", default_size)
    if page_size <= 0:
        page_size = default_size
    page_size = min(page_size, getattr(settings, "MAX_PAGE_SIZE", 100))

    paginator = Paginator(queryset, page_size)
    try:
        page = paginator.page(_int_param(request, "page", 1))
    except (PageNotAnInteger, EmptyPage):
        page = paginator.page(paginator.num_pages)

    base_url = request.build_absolute_uri().split("?")[0]
    query_params = request.query_params.copy()

    def page_url(number):
        query_params["page"] = number
        return f"{base_url}?{query_params.urlencode()}"

    return Response({
        "success": True,
        "data": serializer_class(page.object_list, many=True).data,
        "message": message,
        "count": paginator.count,
        "next": page_url(page.next_page_number()) if page.has_next() else None,
        "previous": page_url(page.previous_page_number()) if page.has_previous() else None,
        "page_size": page_size,
        "current_page": page.number,
        "total_pages": paginator.num_pages,
    })
