# File: tests/test_similarity.py
import pytest

from seo_scout.crawler.similarity import (
    SimilarityFilter,
    check_duplicate,
    extract_main_text,
    fingerprint,
    jaccard,
    normalize_text,
)

ARTICLE = (
    "Our licensed team repairs burst pipes, clears blocked drains and installs new water heaters "
    "for homes and businesses throughout the county, seven days a week."
)


@pytest.mark.parametrize("text", [ARTICLE, "one", "two words", "Mixed CASE, with punctuation!"])
def test_text_is_duplicate_of_its_own_fingerprint(text):
    result = check_duplicate(text, [fingerprint(text, "https://example.com/a")])
    assert result.is_duplicate
    assert result.similarity == 1.0
    assert result.similar_url == "https://example.com/a"


def test_empty_text_is_never_duplicate():
    result = check_duplicate("   ", [fingerprint("", "https://example.com/a")])
    assert not result.is_duplicate
    assert result.similarity == 0.0
    assert not fingerprint("")


def test_different_texts_are_not_duplicates():
    other = "Fresh bread, pastries and cakes baked every morning in our family bakery downtown since 1987."
    result = check_duplicate(other, [fingerprint(ARTICLE, "https://example.com/a")])
    assert not result.is_duplicate
    assert result.similarity < 0.1


def test_threshold_is_configurable():
    near = ARTICLE.replace("seven days a week", "every single day")
    seen = [fingerprint(ARTICLE, "https://example.com/a")]
    score = check_duplicate(near, seen, threshold=1.0).similarity
    assert 0 < score < 1
    assert check_duplicate(near, seen, threshold=score - 0.001).is_duplicate
    assert not check_duplicate(near, seen, threshold=1.0).is_duplicate


def test_normalize_and_jaccard():
    assert normalize_text("  Hello,\n  WORLD!  ") == "hello world"
    a = fingerprint("a b c d e f", shingle_size=2).shingles
    assert jaccard(a, a) == 1.0
    assert jaccard(a, frozenset()) == 0.0


def test_main_text_drops_boilerplate():
    html = (
        "<html><body><nav>Menu Home About</nav><header>Logo</header>"
        "<main><p>Real content here.</p></main><footer>Copyright</footer>"
        "<script>var x = 1;</script></body></html>"
    )
    assert extract_main_text(html) == "Real content here."


def test_filter_flags_boilerplate_pages_and_keeps_originals_only():
    flt = SimilarityFilter(threshold=0.9, shingle_size=5)
    page = f"<html><body><nav>Home Services</nav><main><p>{ARTICLE}</p></main></body></html>"
    copy = f"<html><body><nav>Different nav</nav><main><p>{ARTICLE}</p></main></body></html>"

    assert not flt.check(page, "https://example.com/a").is_duplicate
    verdict = flt.check(copy, "https://example.com/b")
    assert verdict.is_duplicate
    assert verdict.similar_url == "https://example.com/a"
    assert len(flt) == 1


def test_disabled_filter_never_flags():
    flt = SimilarityFilter(enabled=False)
    html = f"<p>{ARTICLE}</p>"
    flt.check(html, "https://example.com/a")
    assert not flt.check(html, "https://example.com/b").is_duplicate
