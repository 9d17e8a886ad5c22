from adlib_scraper.playwright import should_block_resource


def test_heavy_assets_are_blocked():
    for kind in ("image", "media", "font"):
        assert should_block_resource(kind, block_stylesheets=False)


def test_stylesheets_follow_the_flag():
    assert should_block_resource("stylesheet", block_stylesheets=True)
    assert not should_block_resource("stylesheet", block_stylesheets=False)


def test_documents_and_scripts_pass_through():
    assert not should_block_resource("document", block_stylesheets=True)
    assert not should_block_resource("script", block_stylesheets=True)
    assert not should_block_resource("xhr", block_stylesheets=True)
