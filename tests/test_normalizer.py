# File: tests/test_normalizer.py
import pytest

from conftest import LOCAL_BUSINESS_HTML
from seo_scout.crawler.models import CrawlerOutput, PageRole
from seo_scout.errors import ValidationError
from seo_scout.normalizer import flesch_reading_ease, keyword_density, normalize


def test_lengths_are_preserved(output_factory):
    output = output_factory(LOCAL_BUSINESS_HTML)
    page = normalize(output, role=PageRole.HOMEPAGE)

    assert page.role is PageRole.HOMEPAGE
    assert page.headings.h1 == output.headings.h1 == ["Acme Plumbing"]
    assert page.links.internal == output.links.internal
    assert page.links.external == output.links.external
    assert page.images.total == len(output.images) == 2
    assert len(page.schema_types) == len(output.schema_blocks)
    assert page.word_count == output.content.word_count


def test_local_business_signals(page_factory):
    page = page_factory(LOCAL_BUSINESS_HTML)

    assert page.phone_numbers == ["5551234567"]
    assert page.emails == ["info@acme.example"]
    assert page.has_address and page.has_business_name and page.has_nap
    assert page.has_business_hours
    assert page.has_credentials
    assert page.has_navigation
    assert page.has_icon
    assert page.has_local_business_schema
    assert page.schema_names == ["Acme Plumbing"]
    assert page.images.with_alt == 1 and page.images.without_alt == 1
    assert page.content_structure.has_lists
    assert page.has_https and not page.has_mixed_content
    assert not page.redirected and not page.is_noindex


def test_form_field_labels(page_factory):
    html = (
        "<html><body><form>"
        '<label for="n">Name</label><input id="n" name="name">'
        '<input type="email" name="email">'
        '<textarea name="msg"></textarea>'
        '<input type="hidden" name="token"><input type="submit">'
        "</form></body></html>"
    )
    page = page_factory(html)
    assert page.has_contact_form
    assert page.form_fields == 3
    assert page.labeled_fields == 1


def test_broken_links_are_matched_by_key(output_factory):
    output = output_factory(LOCAL_BUSINESS_HTML)
    page = normalize(output, broken_urls=["https://ACME.example/contact/"])
    assert page.links.broken == ["https://acme.example/contact"]


def test_missing_section_is_rejected(output_factory):
    data = output_factory(LOCAL_BUSINESS_HTML).model_dump()
    del data["links"]
    with pytest.raises(ValidationError) as exc_info:
        normalize(data)
    assert "links" in exc_info.value.details


def test_bad_types_are_rejected(output_factory):
    data = output_factory(LOCAL_BUSINESS_HTML).model_dump()
    data["content"]["word_count"] = -5
    with pytest.raises(ValidationError):
        normalize(data)


def test_failed_page_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        normalize(CrawlerOutput.failed("https://acme.example/x", "timeout"))
    assert exc_info.value.url == "https://acme.example/x"


def test_keyword_density():
    density = keyword_density("plumber plumber drain the")
    assert density == {"plumber": 50.0, "drain": 25.0}
    assert keyword_density("") == {}


def test_flesch_reading_ease():
    assert flesch_reading_ease("") is None
    assert flesch_reading_ease("The cat sat on the mat.") == 100.0
    hard = (
        "Notwithstanding comprehensive organizational considerations, administrative "
        "responsibilities necessitate extraordinarily complicated documentation procedures."
    )
    score = flesch_reading_ease(hard)
    assert score is not None and score < 30
