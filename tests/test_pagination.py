"""Tests for the paginator."""

import pytest

from curalink_search.application.search.pagination import paginate


class TestPaginate:
    def test_first_page(self):
        page = paginate(list(range(45)), page=1, limit=20)
        assert page.items == list(range(20))
        assert page.pagination.total_count == 45
        assert page.pagination.total_pages == 3
        assert page.pagination.has_more is True

    def test_last_partial_page(self):
        page = paginate(list(range(45)), page=3, limit=20)
        assert page.items == list(range(40, 45))
        assert page.pagination.has_more is False

    def test_page_beyond_range(self):
        page = paginate(list(range(5)), page=4, limit=20)
        assert page.items == []
        assert page.pagination.total_pages == 1
        assert page.pagination.has_more is False

    def test_empty(self):
        page = paginate([], page=1, limit=20)
        assert page.items == []
        assert page.pagination.total_pages == 0
        assert page.pagination.has_more is False

    def test_to_dict(self):
        d = paginate(list(range(3)), page=1, limit=2).pagination.to_dict()
        assert d == {"page": 1, "limit": 2, "totalCount": 3, "totalPages": 2, "hasMore": True}

    @pytest.mark.parametrize(("page", "limit"), [(0, 20), (1, 0)])
    def test_rejects_invalid(self, page, limit):
        with pytest.raises(ValueError):
            paginate([1], page=page, limit=limit)
