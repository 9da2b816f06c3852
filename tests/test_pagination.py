import asyncio
from dataclasses import replace

import pytest
from playwright.async_api import Error as PlaywrightError

import stockscout.selectors as selectors
from stockscout.errors import PageLoadError, ProductGridNotFound
from stockscout.extractors.schemas import ProductRecord
from stockscout.retailers.bestbuy import scrape_category

from fakedom import FakeElement, FakePage, paginated_page, product_card


def _cards(page_number: int, count: int = 2):
    return [
        product_card(
            title=f"Item {page_number}-{index}",
            href=f"/site/item/{page_number}{index}.p?skuId={page_number}{index:02d}",
            price=f"${page_number}{index}.99",
        )
        for index in range(count)
    ]


def _run(page, policy, records=None, page_limit=None):
    records = [] if records is None else records
    pages = asyncio.run(
        scrape_category(
            page,
            "tv",
            "tv",
            records,
            store_key="dallas",
            policy=policy,
            page_limit=page_limit,
        )
    )
    return pages, records


def test_page_limit_stops_walk(fast_policy) -> None:
    page = paginated_page([_cards(1), _cards(2), _cards(3)])

    pages, records = _run(page, fast_policy, page_limit=2)

    assert pages == 2
    assert [record.merchant_supplied_id for record in records] == ["100", "101", "200", "201"]
    assert page.visited == ["https://www.bestbuy.com/site/searchpage.jsp?st=tv"]


def test_walk_ends_when_next_control_missing(fast_policy) -> None:
    page = paginated_page([_cards(1), _cards(2)])

    pages, records = _run(page, fast_policy)

    assert pages == 2
    assert len(records) == 4


def test_disabled_next_control_ends_walk(fast_policy) -> None:
    disabled = FakeElement("Next", attrs={"aria-disabled": "true"})
    page = paginated_page([_cards(1)], last_next=disabled)

    pages, records = _run(page, fast_policy, page_limit=5)

    assert pages == 1
    assert len(records) == 2
    assert disabled.clicks == 0


def test_hard_page_ceiling_bounds_unlimited_walk(fast_policy) -> None:
    policy = replace(fast_policy, hard_page_ceiling=3)
    page = paginated_page([_cards(n) for n in range(1, 7)])

    pages, records = _run(page, policy)

    assert pages == 3
    assert len(records) == 6


def test_hard_record_ceiling_stops_walk(fast_policy) -> None:
    policy = replace(fast_policy, hard_record_ceiling=3)
    page = paginated_page([_cards(1), _cards(2), _cards(3)])

    pages, records = _run(page, policy)

    assert pages == 2
    assert [record.merchant_supplied_id for record in records] == ["100", "101", "200"]


def test_record_ceiling_caps_a_single_large_page(fast_policy) -> None:
    policy = replace(fast_policy, hard_record_ceiling=3)
    page = paginated_page([_cards(1, count=5), _cards(2)])

    pages, records = _run(page, policy)

    assert pages == 1
    assert len(records) == policy.hard_record_ceiling
    assert [record.merchant_supplied_id for record in records] == ["100", "101", "102"]


def test_duplicates_across_pages_are_dropped(fast_policy) -> None:
    repeat = product_card(title="Item 1-0", href="/site/item/10.p?skuId=100", price="$10.99")
    page = paginated_page([_cards(1), [repeat, *_cards(2, count=1)]])

    pages, records = _run(page, fast_policy)

    assert pages == 2
    assert [record.merchant_supplied_id for record in records] == ["100", "101", "200"]


def test_existing_records_seed_dedupe(fast_policy) -> None:
    existing = [ProductRecord(item_name="Seen", price="1", merchant_supplied_id="100", category="tv")]
    page = paginated_page([_cards(1)])

    _pages, records = _run(page, fast_policy, records=existing)

    assert [record.merchant_supplied_id for record in records] == ["100", "101"]
    assert records[0].item_name == "Seen"


def test_grid_failure_keeps_partial_records(fast_policy) -> None:
    page = paginated_page([_cards(1), []])
    # Second page never renders its results grid.
    page.root.find(selectors.NEXT_PAGE)[0].on_click = lambda _el: setattr(page, "root", FakeElement())
    records: list[ProductRecord] = []

    with pytest.raises(ProductGridNotFound) as excinfo:
        _run(page, fast_policy, records=records)

    assert excinfo.value.page == 2
    assert [record.merchant_supplied_id for record in records] == ["100", "101"]


def test_failed_next_click_raises_page_load_error(fast_policy) -> None:
    page = paginated_page([_cards(1), _cards(2)])

    def _boom(_el):
        raise PlaywrightError("Navigation failed")

    records: list[ProductRecord] = []
    page.root.find(selectors.NEXT_PAGE)[0].on_click = _boom

    with pytest.raises(PageLoadError) as excinfo:
        _run(page, fast_policy, records=records)

    assert excinfo.value.page == 2
    assert len(records) == 2


def test_initial_navigation_failure(fast_policy) -> None:
    page = FakePage()
    page.goto_error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

    with pytest.raises(PageLoadError):
        _run(page, fast_policy)


def test_closed_browser_mid_walk_keeps_partial_records(fast_policy) -> None:
    page = paginated_page([_cards(1), _cards(2)])

    def _close(_el):
        page.wait_error = PlaywrightError("Target page, context or browser has been closed")

    page.root.find(selectors.NEXT_PAGE)[0].on_click = _close
    records: list[ProductRecord] = []

    with pytest.raises(PageLoadError) as excinfo:
        _run(page, fast_policy, records=records)

    assert not isinstance(excinfo.value, ProductGridNotFound)
    assert excinfo.value.page == 2
    assert isinstance(excinfo.value.__cause__, PlaywrightError)
    assert [record.merchant_supplied_id for record in records] == ["100", "101"]
