"""Tests for raw detail normalization."""

from __future__ import annotations

import pytest

from intelligence.agents import ItemNormalizer
from models import RawItemDetail, make_item_key
from scrapers import SAMPLE_CATALOG, render_raw_content


class TestItemNormalizer:
    """条目归一化测试"""

    def setup_method(self) -> None:
        self.normalizer = ItemNormalizer()

    def test_normalizes_rendered_catalog_entry(self) -> None:
        """示例目录条目完整解析"""
        entry = SAMPLE_CATALOG[0]
        detail = RawItemDetail(
            title=entry["title"],
            url="catalog://movies/blade-runner-2049",
            raw_content=render_raw_content(entry),
            year=entry["year"],
        )

        item = self.normalizer.normalize(detail)

        assert item.title == "Blade Runner 2049"
        assert item.year == 2017
        assert item.tags == ["Science Fiction", "Drama", "Thriller"]
        assert item.rating == 8.0
        assert item.creator == "Denis Villeneuve"
        assert item.classification == "R"
        assert item.is_suitable is False
        assert "Artificial Intelligence" in item.themes

    def test_missing_fields_get_conservative_defaults(self) -> None:
        """缺失字段使用保守默认值"""
        item = self.normalizer.normalize(RawItemDetail(title="Mystery Film", url="catalog://movies/x"))

        assert item.year is None
        assert item.rating == 0.0
        assert item.classification == "NR"
        assert item.tags == []
        assert item.item_key == "mystery_film_unknown"

    def test_alias_fields_and_scaled_ratings(self) -> None:
        """字段别名与评分换算"""
        raw = "\n".join([
            "Name: Ignored Because Detail Has Title",
            "Released: March 1995",
            "Genre: Drama / History; Drama",
            "Score: 4.5/5",
            "Rated: pg",
            "Synopsis: Three astronauts improvise their way home.",
        ])
        item = self.normalizer.normalize(RawItemDetail(title="Apollo 13", url="u", raw_content=raw))

        assert item.year == 1995
        assert item.tags == ["Drama", "History"]
        assert item.rating == 9.0
        assert item.classification == "PG"
        assert item.is_suitable is True
        assert item.description.startswith("Three astronauts")

    def test_detail_without_title_is_rejected(self) -> None:
        """标题缺失时报错"""
        with pytest.raises(ValueError):
            self.normalizer.normalize(RawItemDetail(title="  ", url="catalog://movies/blank"))


def test_item_key_normalizes_title_and_year() -> None:
    assert make_item_key("WALL-E", 2008) == "wall_e_2008"
    assert make_item_key("  The Matrix!  ", 1999) == "the_matrix_1999"
    assert make_item_key("Up") == "up_unknown"
