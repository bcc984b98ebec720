import pytest

from fieldreport.core.pagination import Pagination, page_after_delete, total_pages


@pytest.mark.parametrize("total,size,expected", [(0, 5, 1), (-3, 5, 1), (1, 5, 1), (5, 5, 1), (6, 5, 2), (11, 5, 3)])
def test_total_pages(total, size, expected):
    assert total_pages(total, size) == expected


def test_delete_last_row_of_last_page_steps_back():
    # 11 rows, page size 5, viewing page 3 which holds a single row
    assert page_after_delete(3, 5, 11) == 2
    assert total_pages(10, 5) == 2


def test_delete_only_row_goes_to_first_page():
    assert page_after_delete(1, 5, 1) == 1
    assert total_pages(0, 5) == 1


def test_delete_keeps_page_when_it_still_exists():
    assert page_after_delete(2, 5, 12) == 2
    assert page_after_delete(1, 5, 3) == 1


def test_pagination_after_delete():
    pg = Pagination(page=3, page_size=5, total_count=11).after_delete()
    assert (pg.page, pg.total_count, pg.total_pages) == (2, 10, 2)

    empty = Pagination(page=1, page_size=5, total_count=1).after_delete()
    assert (empty.page, empty.total_count, empty.total_pages) == (1, 0, 1)


def test_navigation_is_noop_at_bounds():
    first = Pagination(page=1, page_size=5, total_count=11)
    assert not first.has_prev
    assert first.prev_page() == 1
    assert first.next_page() == 2

    last = Pagination(page=3, page_size=5, total_count=11)
    assert not last.has_next
    assert last.next_page() == 3
    assert last.offset == 10


def test_clamp():
    assert Pagination.clamp(9, 5, 11).page == 3
    assert Pagination.clamp(0, 5, 11).page == 1
    assert Pagination.clamp(None, 5, 0).page == 1


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        Pagination(page=1, page_size=0, total_count=3)
