from app.utils.markdown import (
    analyze_content_structure,
    extract_title_from_markdown,
    remove_title_from_markdown,
    rewrite_internal_links,
    to_markdown_document,
)


def test_extract_title_finds_first_h1():
    assert extract_title_from_markdown("intro\n#  Weekly Changelogs \nbody") == "Weekly Changelogs"
    assert extract_title_from_markdown("## Only a subheading") == ""


def test_remove_title_only_drops_leading_h1():
    assert remove_title_from_markdown("# Title\nBody") == "Body"
    assert remove_title_from_markdown("Intro\n# Title\nBody") == "Intro\n# Title\nBody"


def test_analyze_content_structure_counts_elements():
    text = (
        "# Title\n\n"
        "Read [the guide](https://guide.example).\n\n"
        "- first\n- second\n\n"
        "```\nprint('hi')\n```\n\n"
        "![diagram](diagram.png)"
    )
    structure = analyze_content_structure(text)

    assert structure["headings"] == 1
    assert structure["lists"] == 2
    assert structure["code_blocks"] == 1
    assert structure["links"] == 1
    assert structure["images"] == 1


def test_to_markdown_document_reattaches_title():
    assert to_markdown_document("Weekly", "\nBody text") == "# Weekly\n\nBody text"
    assert to_markdown_document("", "Body text") == "Body text"


def test_rewrite_internal_links():
    text = "See [[Getting Started]] or [[Pricing Plans|our pricing]]."

    assert rewrite_internal_links(text) == "See [Getting Started](#getting-started) or [our pricing](#pricing-plans)."
    assert rewrite_internal_links("[[Pricing|plans]]", html=True) == (
        '<a href="#pricing" class="internal-link">plans</a>'
    )
    assert rewrite_internal_links("[plain](https://a.example)") == "[plain](https://a.example)"
