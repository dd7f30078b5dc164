from __future__ import annotations

import pytest

from conftest import make_user, make_video
from vidtube.models.models import Video
from vidtube.services.views.pipeline import PageRequest, PageResult, ViewPipeline, split_sort

SORTS = {"createdAt": Video.created_at, "views": Video.views}


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (None, None, (1, 10)),
        ("3", "25", (3, 25)),
        ("abc", "-4", (1, 10)),
        ("0", "0", (1, 10)),
        (" 2 ", "5000", (2, 100)),
    ],
)
def test_page_request_parse(page, limit, expected):
    request = PageRequest.parse(page, limit)
    assert (request.page, request.limit) == expected


def test_page_meta_for_middle_page():
    result = PageResult(docs=["a", "b"], total_docs=7, request=PageRequest(page=2, limit=2))

    assert result.meta() == {
        "total_docs": 7,
        "limit": 2,
        "page": 2,
        "total_pages": 4,
        "paging_counter": 3,
        "has_prev_page": True,
        "has_next_page": True,
        "prev_page": 1,
        "next_page": 3,
    }
    assert result.map(str.upper).docs == ["A", "B"]


def test_empty_result_still_has_one_page():
    meta = PageResult(docs=[], total_docs=0, request=PageRequest(page=1, limit=10)).meta()
    assert (meta["total_pages"], meta["has_next_page"], meta["next_page"]) == (1, False, None)


def test_split_sort():
    assert split_sort(None, None, SORTS, ("createdAt", "desc")) == (Video.created_at, True)
    assert split_sort("views", "asc", SORTS, ("createdAt", "desc")) == (Video.views, False)
    assert split_sort("views", "ASC", SORTS, ("createdAt", "desc"))[1] is False
    assert split_sort("views", "sideways", SORTS, ("createdAt", "desc"))[1] is True
    assert split_sort("title", "asc", SORTS, ("createdAt", "desc")) == (None, False)


async def test_stages_do_not_mutate_the_base(db):
    owner = await make_user(db, "owner")
    for views in (5, 20, 50):
        await make_video(db, owner, title=f"v{views}", views=views)

    base = ViewPipeline.over(Video).sort(Video.views.desc(), Video.id)
    popular = base.filter(Video.views >= 20)

    assert await base.count(db) == 3
    assert await popular.count(db) == 2

    page = await base.page(db, PageRequest(page=2, limit=2))
    assert page.total_docs == 3
    assert [row.Video.views for row in page.docs] == [5]
    assert (await base.first(db)).Video.views == 50
