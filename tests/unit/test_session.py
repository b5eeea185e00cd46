import re

import pytest

from pagewright.core.descriptors import PageDescriptor, element
from pagewright.core.session import TransitionResult
from pagewright.errors import ConfigurationError, TransitionTimeout, WrongPageError
from tests.conftest import FakeNode

BASE = "https://app.test"


def page(name, path, *elements, entry=True):
    return PageDescriptor(
        name=name,
        url_patterns=[re.compile(rf"^{re.escape(BASE + path)}")],
        entry_url=BASE + path if entry else None,
        elements=list(elements),
    )


def go_to(url):
    def _nav(drv):
        drv.url = url
    return _nav


@pytest.fixture
def site(driver):
    """Home -> (Search | Results); each page has one validator element."""
    home = page(
        "Home",
        "/home",
        element("home_marker", validator=True),
        element("search_link", "link", href="/search", click_destination=["Search", "Results"]),
        element("about_link", "link", href="/about", click_destination="About"),
    )
    search = page("Search", "/search", element("search_marker", validator=True))
    results = page("Results", "/results", element("results_marker", validator=True))
    about = page("About", "/about", element("about_marker", validator=True), entry=False)

    driver.nodes = [
        FakeNode(id="home_marker"),
        FakeNode("link", href="/search", on_click=go_to(BASE + "/results")),
        FakeNode("link", href="/about", on_click=go_to(BASE + "/nowhere")),
    ]
    return [home, search, results, about]


def test_enter_sets_current_and_acceptable(driver, make_session, site):
    session = make_session(site)
    assert session.current_page is None
    assert session.acceptable_pages is None

    home = session.enter("Home")

    assert session.current_page is home
    assert session.acceptable_pages == (home,)
    assert session.previous_url == BASE + "/home"
    assert driver.navigations == [BASE + "/home"]


def test_enter_without_entry_url_fails_without_navigating(driver, make_session, site):
    session = make_session(site)
    with pytest.raises(ConfigurationError):
        session.enter("About")
    assert driver.navigations == []
    assert session.current_page is None


def test_fast_path_skips_revalidation(driver, make_session, site):
    session = make_session(site)
    session.enter("Home")
    queries = driver.queries

    session.dispatch("home_marker")
    session.element("search_link")

    assert session.revalidations == 0
    assert driver.queries == queries


def test_url_change_triggers_revalidation(driver, make_session, site):
    session = make_session(site)
    session.enter("Home")
    session.acceptable_pages = ["Home", "Search"]
    driver.url = BASE + "/search"
    driver.nodes.append(FakeNode(id="search_marker"))

    proxy = session.dispatch("search_marker")

    assert session.revalidations == 1
    assert session.current_page is session.page("Search")
    assert proxy.page is session.page("Search")
    assert session.previous_url == BASE + "/search"


def test_revalidation_without_match_is_wrong_page(driver, make_session, site, settings):
    session = make_session(site)
    session.enter("Home")
    driver.url = BASE + "/elsewhere"

    with pytest.raises(WrongPageError) as ei:
        session.dispatch("home_marker")
    assert ei.value.url == BASE + "/elsewhere"
    assert ei.value.acceptable == ["Home"]


def test_change_pages_lands_on_second_destination(driver, make_session, site):
    driver.nodes.append(FakeNode(id="results_marker", hidden_for=1))
    session = make_session(site)
    home = session.enter("Home")
    clicks = []

    result = session.change_pages(["Search", "Results"], lambda: clicks.append(driver.click(driver.nodes[1])))

    assert isinstance(result, TransitionResult)
    assert result.ok and bool(result)
    assert result.page == "Results"
    assert result.attempts == 2
    assert len(clicks) == 1
    assert session.current_page is session.page("Results")
    assert session.current_page is not home
    assert session.previous_url == BASE + "/results"


def test_click_destination_goes_through_change_pages(driver, make_session, site):
    driver.nodes.append(FakeNode(id="results_marker"))
    session = make_session(site)
    session.enter("Home")

    result = session.element("search_link").click()

    assert result.ok
    assert result.page == "Results"
    assert driver.nodes[1].clicks == 1
    assert [p.name for p in session.acceptable_pages] == ["Search", "Results"]


def test_transition_clears_departed_page_handles(driver, make_session, site):
    driver.nodes.append(FakeNode(id="results_marker"))
    session = make_session(site)
    home = session.enter("Home")
    link = home.element("search_link")
    link.resolve()
    assert link._cached is not None

    link.click()

    assert link._cached is None


def test_transition_that_never_lands_reports_failure(driver, make_session, site, settings):
    session = make_session(site)
    session.enter("Home")

    result = session.element("about_link").click()

    assert result.ok is False
    assert result.page is None
    assert result.attempts == settings.TRANSITION_ATTEMPTS
    assert "/nowhere" in result.reason
    # the link is clicked again on every attempt where no destination matches
    assert driver.nodes[2].clicks == settings.TRANSITION_ATTEMPTS
    with pytest.raises(TransitionTimeout) as ei:
        result.raise_for_failure()
    assert ei.value.acceptable == ["About"]


def test_transition_keeps_most_specific_reason(driver, make_session, site, settings):
    session = make_session(site)
    session.enter("Home")

    # lands on Results but its validator never shows up
    result = session.element("search_link").click()

    assert result.ok is False
    assert "Results" in result.reason
    assert "results_marker" in result.reason
    # URL matched after the first click, so it is never repeated
    assert driver.nodes[1].clicks == 1


def test_resolve_pages(driver, make_session, site):
    session = make_session(site)
    home, search = session.page("Home"), session.page("Search")

    assert session.resolve_pages("Home") == (home,)
    assert session.resolve_pages(site[1]) == (search,)
    assert session.resolve_pages(home) == (home,)
    assert session.resolve_pages(["Home", ("Search", "Home"), site[0]]) == (home, search)

    with pytest.raises(ConfigurationError):
        session.resolve_pages("Nope")
    with pytest.raises(ConfigurationError):
        session.resolve_pages(42)
    with pytest.raises(ConfigurationError):
        session.acceptable_pages = []


def test_dispatch_runs_page_actions(driver, make_session, site):
    def open_search(pg):
        return pg.element("search_link").click()

    site[0] = site[0].extend("Home", url_patterns=site[0].url_patterns, entry_url=site[0].entry_url,
                              actions={"open_search": open_search})
    driver.nodes.append(FakeNode(id="results_marker"))
    session = make_session(site)
    session.enter("Home")

    result = session.dispatch("open_search")

    assert result.page == "Results"
    assert session.current_page.name == "Results"


def test_handle_alert(driver, make_session, site):
    session = make_session(site)
    driver.dialogs.append("Are you sure?")
    assert session.handle_alert() is True
    assert session.handle_alert(timeout_ms=0) is False


def test_pause_only_in_debug_mode(driver, make_session, site, settings):
    paused = []
    quiet = make_session(site, on_debug_pause=paused.append)
    assert quiet.pause("look") is False

    loud = make_session(site, config={"global": {"debug": True}}, on_debug_pause=paused.append)
    assert loud.debug is True
    assert loud.pause("look") is True
    assert paused == ["look"]


def test_get_config(driver, make_session, site):
    session = make_session(site, config={"site": {"user": "octocat"}})
    assert session.get_config("site", "user") == "octocat"
    with pytest.raises(ConfigurationError):
        session.get_config("site", "password")


def test_enter_discards_handles_of_the_departed_page(driver, make_session, site):
    driver.nodes.append(FakeNode(id="search_marker"))
    session = make_session(site)
    session.enter("Home")
    marker = session.element("home_marker")
    assert marker.resolve() is driver.nodes[0]
    assert marker._cached is not None

    session.enter("Search")

    assert session.current_page is session.page("Search")
    assert marker._cached is None
