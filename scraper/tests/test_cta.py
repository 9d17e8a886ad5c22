from adlib_scraper.cta import DEFAULT_ACCEPTED_CTAS, classify_cta, is_accepted, normalize_cta, pick_cta


def test_normalization_is_case_and_whitespace_insensitive():
    assert normalize_cta("SHOP NOW") == "Shop Now"
    assert normalize_cta("shop   now") == "Shop Now"
    assert normalize_cta("Shop Now") == "Shop Now"
    assert normalize_cta(" shop\nnu ") == "Shop Nu"
    assert normalize_cta("Nu shoppen") == "Shoppen"


def test_normalize_keeps_unknown_labels_readable():
    assert normalize_cta("  Learn   More ") == "Learn More"
    assert normalize_cta("   ") is None
    assert normalize_cta(None) is None


def test_classify_cta_only_knows_canonical_labels():
    assert classify_cta("Learn More") is None
    assert classify_cta("") is None
    assert classify_cta("shopnow") == "Shop Now"


def test_pick_cta_ignores_long_texts_and_takes_first_match():
    texts = [
        "Sponsored",
        "Shop now for the best deals of the whole season",
        "Meer informatie",
        "Shop Nu",
        "Shop Now",
    ]
    assert pick_cta(texts) == "Shop Nu"
    assert pick_cta(["Learn More", "Sign Up"]) is None
    assert pick_cta(None) is None


def test_accepted_set_membership():
    assert is_accepted("Shop Nu", DEFAULT_ACCEPTED_CTAS)
    assert is_accepted("Shop Now", ["shop now"])
    assert not is_accepted("Learn More", DEFAULT_ACCEPTED_CTAS)
    assert not is_accepted(None, DEFAULT_ACCEPTED_CTAS)
