import asyncio
from urllib.parse import quote

import pytest

from app.api.deps import get_metadata_resolver
from app.schemas.forms import AgentClassification, DiscoveryFailure, EntryMap
from app.services.preview import PreviewMetadataResolver, UserAgentClassifier, build_app_url, script_string

from helpers import FakeDiscoverer, VIEW_URL

LINE_CRAWLER_UA = "facebookexternalhit/1.1;line-poker/1.0"
LINE_IN_APP_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Mobile/15E148 Safari Line/13.16.0"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
APP_URL = f"https://testserver/?form={quote(VIEW_URL, safe='')}&redirect=true&notify=0"


@pytest.fixture
def discoverer():
    return FakeDiscoverer(
        EntryMap(identity_field="entry.1234567890", title="イベント参加登録", description="当日の受付に使います")
    )


@pytest.fixture
def preview_client(client, override, settings, discoverer):
    override(get_metadata_resolver, PreviewMetadataResolver(discoverer, settings))
    return client


@pytest.mark.parametrize(
    "user_agent, expected",
    [
        (LINE_CRAWLER_UA, AgentClassification.CRAWLER),
        ("LineBot/1.0", AgentClassification.CRAWLER),
        ("Slackbot-LinkExpanding 1.0", AgentClassification.CRAWLER),
        (LINE_IN_APP_UA, AgentClassification.IN_APP_HUMAN),
        ("Mozilla/5.0 (Linux; Android 13; Pixel 7; wv) AppleWebKit/537.36", AgentClassification.IN_APP_HUMAN),
        (DESKTOP_UA, AgentClassification.PLAIN_BROWSER),
        (None, AgentClassification.PLAIN_BROWSER),
    ],
)
def test_classify(settings, user_agent, expected):
    assert UserAgentClassifier.from_settings(settings).classify(user_agent) is expected


def test_build_app_url_defaults_to_https():
    assert build_app_url(None, "example.com", "f", True) == "https://example.com/?form=f&redirect=true&notify=1"
    assert build_app_url("http, https", "example.com", "f", False).startswith("http://example.com/")


def test_script_string_cannot_close_script():
    assert "</script>" not in script_string("</script><script>alert(1)</script>")


def test_missing_form_is_400_without_lookups(preview_client, discoverer):
    resp = preview_client.get("/api/link-preview", headers={"user-agent": LINE_CRAWLER_UA})
    assert resp.status_code == 400
    assert resp.text == 'Missing "form" parameter'
    assert discoverer.calls == []


def test_crawler_gets_open_graph_page(preview_client, discoverer):
    resp = preview_client.get(
        "/api/link-preview",
        params={"form": VIEW_URL},
        headers={"user-agent": LINE_CRAWLER_UA},
        follow_redirects=False,
    )
    assert resp.status_code == 200
    assert resp.headers["cache-control"] == "public, max-age=60, s-maxage=60"
    assert '<meta property="og:title" content="イベント参加登録"/>' in resp.text
    assert '<meta property="og:description" content="当日の受付に使います"/>' in resp.text
    assert "location.replace" not in resp.text
    assert discoverer.calls == [VIEW_URL]


def test_crawler_metadata_is_cached(preview_client, discoverer):
    for _ in range(2):
        preview_client.get("/api/link-preview", params={"form": VIEW_URL}, headers={"user-agent": LINE_CRAWLER_UA})
    assert len(discoverer.calls) == 1


def test_explicit_metadata_skips_lookup_and_is_escaped(preview_client, discoverer):
    resp = preview_client.get(
        "/api/link-preview",
        params={"form": VIEW_URL, "title": "<script>alert(1)</script>", "desc": 'a "quoted" desc'},
        headers={"user-agent": LINE_CRAWLER_UA},
    )
    assert resp.status_code == 200
    assert "<script>alert(1)</script>" not in resp.text
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in resp.text
    assert "a &quot;quoted&quot; desc" in resp.text
    assert discoverer.calls == []


def test_in_app_human_gets_self_navigating_page(preview_client, discoverer):
    resp = preview_client.get(
        "/api/link-preview",
        params={"form": VIEW_URL},
        headers={"user-agent": LINE_IN_APP_UA},
        follow_redirects=False,
    )
    assert resp.status_code == 200
    assert resp.headers["cache-control"] == "no-store"
    assert 'http-equiv="refresh"' in resp.text
    assert "location.replace(" in resp.text
    assert "og:title" not in resp.text
    assert discoverer.calls == []


def test_plain_browser_is_redirected(preview_client):
    resp = preview_client.get(
        "/api/link-preview",
        params={"form": VIEW_URL},
        headers={"user-agent": DESKTOP_UA},
        follow_redirects=False,
    )
    assert resp.status_code == 302
    assert resp.headers["location"] == APP_URL


def test_notify_and_forwarded_proto_pass_through(preview_client):
    resp = preview_client.get(
        "/api/link-preview",
        params={"form": VIEW_URL, "notify": "1"},
        headers={"user-agent": DESKTOP_UA, "x-forwarded-proto": "http"},
        follow_redirects=False,
    )
    assert resp.headers["location"].startswith("http://testserver/?form=")
    assert resp.headers["location"].endswith("&redirect=true&notify=1")


def test_defaults_fill_in_when_discovery_fails(client, override, settings):
    failing = FakeDiscoverer(DiscoveryFailure(reason="no-html"))
    override(get_metadata_resolver, PreviewMetadataResolver(failing, settings))
    resp = client.get("/api/link-preview", params={"form": VIEW_URL}, headers={"user-agent": LINE_CRAWLER_UA})
    assert resp.status_code == 200
    assert settings.preview_default_title in resp.text
    assert settings.preview_default_description in resp.text


def test_resolver_cache_shares_spellings_and_is_capped(settings, discoverer):
    resolver = PreviewMetadataResolver(discoverer, settings, max_entries=2)

    async def scenario():
        await resolver.resolve(VIEW_URL, None, None)
        await resolver.resolve(VIEW_URL + "?usp=sf_link", None, None)
        for token in ("1FAIpQLSeOne", "1FAIpQLSeTwo"):
            await resolver.resolve(f"https://docs.google.com/forms/d/e/{token}/viewform", None, None)

    asyncio.run(scenario())
    assert discoverer.calls.count(VIEW_URL) == 1
    assert len(resolver.cache) == 2
    assert VIEW_URL not in resolver.cache
