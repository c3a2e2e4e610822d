from datetime import datetime, timezone

import pytest

from app.reports.colors import hsl_to_hex, normalize_color, to_grayscale
from app.reports.theme import (
    SECTION_KEYS,
    create_paragraph_styles,
    create_table_styles,
    get_color_palette,
    get_preset,
    resolve,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("hsl(220 70% 50%)", "#2662d9"),
        ("hsl(220, 70%, 50%)", "#2662d9"),
        ("hsl(0 100% 50%)", "#ff0000"),
        ("#ABCDEF", "#abcdef"),
        ("#abc", "#aabbcc"),
    ],
)
def test_normalize_color(value, expected):
    assert normalize_color(value) == expected


@pytest.mark.parametrize("value", ["garbage", "", None, 42, "#12345", "rgb(1,2,3)"])
def test_normalize_color_falls_back(value):
    assert normalize_color(value) == "#3b82f6"
    assert normalize_color(value, fallback="#000000") == "#000000"


def test_to_grayscale_keeps_luminance():
    gray = to_grayscale("#ff0000")
    assert gray == "#4c4c4c"
    assert to_grayscale("#ffffff") == "#ffffff"


def test_resolve_defaults():
    theme = resolve(now=datetime(2026, 1, 1, tzinfo=timezone.utc))

    assert theme.primary_color == "#3b82f6"
    assert theme.page_size == "A4"
    assert theme.cover_style == 1
    assert theme.footer_text == "© 2026 SEO Audit. All rights reserved."
    assert all(theme.include(key) for key in SECTION_KEYS)


def test_user_overrides_win_over_tenant_defaults():
    tenant = {"primaryColor": "#111111", "companyName": "Agency", "coverStyle": 3}
    user = {"primaryColor": "hsl(220 70% 50%)", "coverStyle": None}

    theme = resolve(tenant, user)

    assert theme.primary_color == "#2662d9"
    assert theme.company_name == "Agency"
    assert theme.cover_style == 3


def test_include_options_merge_key_by_key():
    tenant = {"includeOptions": {"charts": False, "performance": False}}
    user = {"includeOptions": {"performance": True}}

    theme = resolve(tenant, user)

    assert theme.include("performance") is True
    assert theme.include("charts") is False
    assert theme.include("onPageSEO") is True


def test_unknown_include_keys_are_kept():
    theme = resolve(None, {"includeOptions": {"competitorAnalysis": False}})
    assert theme.include_options["competitorAnalysis"] is False


def test_invalid_values_fall_back():
    theme = resolve(
        None,
        {
            "primaryColor": "garbage",
            "pageSize": "tabloid",
            "colorMode": "sepia",
            "coverStyle": 9,
            "outputQuality": "letter",
        },
    )

    assert theme.primary_color == "#3b82f6"
    assert theme.page_size == "A4"
    assert theme.color_mode == "Full"
    assert theme.cover_style == 1
    assert theme.output_quality == "Standard"


def test_resolve_does_not_mutate_inputs():
    user = {"includeOptions": {"charts": "false"}, "pageSize": "letter"}
    snapshot = {"includeOptions": {"charts": "false"}, "pageSize": "letter"}

    theme = resolve(None, user)

    assert user == snapshot
    assert theme.include("charts") is False
    assert theme.page_size == "LETTER"


def test_grayscale_mode_applies_to_palette():
    theme = resolve(None, {"colorMode": "Grayscale", "primaryColor": "#ff0000"})

    assert theme.primary_color == "#ff0000"
    assert theme.primary == "#4c4c4c"
    palette = get_color_palette(theme)
    red, green, blue = palette["high"].rgb()
    assert red == green == blue


def test_preset_lookup_falls_back_to_default():
    assert get_preset("corporate")["primaryColor"] == "#1f4e79"
    assert get_preset("missing") == get_preset("default")


def test_paragraph_styles_use_theme_fonts():
    theme = resolve(None, {"fontFamily": "Times New Roman, serif"})
    styles = create_paragraph_styles(theme)

    assert styles["body"].fontName == "Times-Roman"
    assert styles["heading1"].fontName == "Times-Bold"
    for key in ("title", "lead", "explanation", "notes", "placeholder", "footer"):
        assert key in styles


def test_hsl_input_is_clamped_before_conversion():
    assert normalize_color("hsl(400 150% 50%)") == hsl_to_hex(360, 100, 50) == "#ff0000"
    assert hsl_to_hex(0, 0, 100) == "#ffffff"


def test_table_styles_follow_theme():
    theme = resolve(None, {"fontFamily": "Courier"})
    styles = create_table_styles(theme)

    assert set(styles) == {"standard", "minimal"}
    commands = [cmd for cmd in styles["standard"].getCommands() if cmd[0] == "FONTNAME"]
    assert commands[0][3] == "Courier-Bold"
