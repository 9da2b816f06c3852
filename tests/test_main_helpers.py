import asyncio

import pytest

from stockscout import main as cli
from playwright.async_api import Error as PlaywrightError

import stockscout.selectors as selectors
from stockscout.errors import ConfigurationError, NoLocationResults, PageLoadError
from stockscout.extractors.schemas import ProductRecord
from stockscout.retailers.bestbuy import scrape_category, set_store_context

from fakedom import FakePage, paginated_page, product_card


def test_parse_args_defaults() -> None:
    args = cli.parse_args(["--store", "dallas", "--category", "tv"])
    assert args.store == "dallas"
    assert args.category == "tv"
    assert args.page is None
    assert args.skip_validation is False


def test_parse_args_page_must_be_positive(capsys) -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["--store", "dallas", "--category", "tv", "--page", "0"])
    assert "positive integer" in capsys.readouterr().err


def test_parse_args_rejects_unknown_store() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["--store", "boston", "--category", "tv"])


def test_deep_merge_keeps_nested_defaults() -> None:
    merged = cli._deep_merge(
        {"output": {"dir": "outputs", "filename_template": "{store}.csv"}, "base_url": "a"},
        {"output": {"dir": "elsewhere"}},
    )
    assert merged == {"output": {"dir": "elsewhere", "filename_template": "{store}.csv"}, "base_url": "a"}


def test_packaged_store_directory_loads() -> None:
    config = cli._load_config(None)
    directory = cli._load_store_directory(cli._resolve_path(config["store_directory"]))

    assert set(directory) == set(cli.STORE_KEYS)
    assert directory["dallas"].search_attempts()[0] == "Dallas, TX"
    assert cli._resolve_search_term(config, "computer") == "computer"


def test_lookup_unknown_store_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        cli._lookup_store({}, "dallas")


def _write_config(tmp_path):
    config = tmp_path / "config.yml"
    config.write_text(
        "output:\n"
        f"  dir: {tmp_path / 'out'}\n"
        "reference:\n"
        f"  dir: {tmp_path / 'ref'}\n",
        encoding="utf-8",
    )
    return config


def _fake_runner(*, rows, error=None, calls=None):
    async def _run(location, store_key, category, search_term, records, **kwargs):
        if calls is not None:
            calls.append({"store_key": store_key, "search_term": search_term, **kwargs})
        records.extend(rows)
        if error is not None:
            raise error
        return 1

    return _run


def _row(sku):
    return ProductRecord(item_name=f"Item {sku}", price="9.99", merchant_supplied_id=sku, category="tv")


def test_successful_run_writes_csv(monkeypatch, tmp_path) -> None:
    calls = []
    monkeypatch.setattr(cli, "run_for_store", _fake_runner(rows=[_row("1"), _row("2")], calls=calls))

    exit_code = asyncio.run(
        cli._async_main(["--store", "dallas", "--category", "tv", "--page", "2", "--config", str(_write_config(tmp_path))])
    )

    assert exit_code == 0
    assert calls[0]["page_limit"] == 2
    assert calls[0]["search_term"] == "tv"
    lines = (tmp_path / "out" / "dallas_products.csv").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert (tmp_path / "ref" / "dallas_reference.csv").exists()


def test_page_failure_flushes_partial_rows(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(
        cli,
        "run_for_store",
        _fake_runner(rows=[_row("1")], error=PageLoadError(store_key="dallas", page=2)),
    )

    exit_code = asyncio.run(
        cli._async_main(
            ["--store", "dallas", "--category", "tv", "--skip-validation", "--config", str(_write_config(tmp_path))]
        )
    )

    assert exit_code == 1
    lines = (tmp_path / "out" / "dallas_products.csv").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert not (tmp_path / "ref").exists()


def test_location_failure_writes_nothing(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(
        cli,
        "run_for_store",
        _fake_runner(rows=[], error=NoLocationResults(store_key="dallas", candidates=["TX"])),
    )

    exit_code = asyncio.run(
        cli._async_main(["--store", "dallas", "--category", "tv", "--config", str(_write_config(tmp_path))])
    )

    assert exit_code == 1
    assert not (tmp_path / "out").exists()


def test_log_level_flag_is_case_insensitive() -> None:
    args = cli.parse_args(["--store", "minneapolis", "--category", "accessories", "--log-level", "debug"])
    assert args.log_level == "DEBUG"


def test_set_level_updates_package_loggers() -> None:
    import logging

    from stockscout import logging_config

    level_logger = logging_config.get_logger("stockscout.level_check")
    try:
        logging_config.set_level("warning")
        assert level_logger.level == logging.WARNING
    finally:
        logging_config.set_level(logging_config.DEFAULT_LEVEL)


@pytest.fixture
def quick_env(monkeypatch):
    monkeypatch.setenv("STOCKSCOUT_NAVIGATION_ATTEMPTS", "1")
    monkeypatch.setenv("STOCKSCOUT_SCROLL_PAUSE_MS", "0")
    monkeypatch.setenv("STOCKSCOUT_SCROLL_MAX_STEPS", "1")
    monkeypatch.setenv("STOCKSCOUT_LOG_FILE", "0")


def test_closed_browser_during_pagination_keeps_partial_csv(monkeypatch, tmp_path, quick_env) -> None:
    first = [
        product_card(title="Item 1", href="/site/item/1.p?skuId=101", price="$1.99"),
        product_card(title="Item 2", href="/site/item/2.p?skuId=102", price="$2.99"),
    ]
    second = [product_card(title="Item 3", href="/site/item/3.p?skuId=103", price="$3.99")]
    page = paginated_page([first, second])

    def _close(_el):
        page.wait_error = PlaywrightError("Target page, context or browser has been closed")

    page.root.find(selectors.NEXT_PAGE)[0].on_click = _close

    async def _run(location, store_key, category, search_term, records, **kwargs):
        return await scrape_category(
            page,
            category,
            search_term,
            records,
            store_key=store_key,
            policy=kwargs["policy"],
            page_limit=kwargs.get("page_limit"),
        )

    monkeypatch.setattr(cli, "run_for_store", _run)

    exit_code = asyncio.run(
        cli._async_main(
            ["--store", "dallas", "--category", "tv", "--skip-validation", "--config", str(_write_config(tmp_path))]
        )
    )

    assert exit_code == 1
    lines = (tmp_path / "out" / "dallas_products.csv").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert "101" in lines[1]
    assert "102" in lines[2]


def test_unreachable_home_page_writes_nothing(monkeypatch, tmp_path, quick_env) -> None:
    page = FakePage()
    page.goto_error = PlaywrightError("net::ERR_CONNECTION_RESET")

    async def _run(location, store_key, category, search_term, records, **kwargs):
        await set_store_context(page, location, store_key, kwargs["policy"])
        return 0

    monkeypatch.setattr(cli, "run_for_store", _run)

    exit_code = asyncio.run(
        cli._async_main(["--store", "dallas", "--category", "tv", "--config", str(_write_config(tmp_path))])
    )

    assert exit_code == 1
    assert not (tmp_path / "out").exists()
    assert not (tmp_path / "ref").exists()
