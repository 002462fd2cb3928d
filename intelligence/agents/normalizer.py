"""
Item Normalizer
把目录源的原始详情转为 CatalogItem (纯函数，保守默认值)
"""
from typing import Dict, List, Optional
import re

from models import CatalogItem, RawItemDetail


# 原始字段名 -> 统一字段名
FIELD_ALIASES: Dict[str, str] = {
    "title": "title",
    "name": "title",
    "year": "year",
    "release year": "year",
    "released": "year",
    "genre": "tags",
    "genres": "tags",
    "tags": "tags",
    "rating": "rating",
    "score": "rating",
    "director": "creator",
    "directors": "creator",
    "creator": "creator",
    "author": "creator",
    "classification": "classification",
    "content rating": "classification",
    "family rating": "classification",
    "rated": "classification",
    "themes": "themes",
    "theme": "themes",
    "description": "description",
    "synopsis": "description",
    "overview": "description",
    "poster": "poster_url",
    "poster url": "poster_url",
}

_LINE_PATTERN = re.compile(r"^\s*([A-Za-z][A-Za-z ]*?)\s*:\s*(.*?)\s*$")
_YEAR_PATTERN = re.compile(r"\b(18|19|20)\d{2}\b")
_RATING_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(?:\s*/\s*(\d+))?")
_SPLIT_PATTERN = re.compile(r"\s*[,|/;]\s*")


class ItemNormalizer:
    """
    原始详情归一化

    raw_content 采用 "Key: value" 行格式；缺失字段使用保守默认值：
    年份取详情或 None，评分 0，分级 NR
    """

    def parse_fields(self, raw_content: str) -> Dict[str, str]:
        fields: Dict[str, str] = {}
        for line in str(raw_content or "").splitlines():
            match = _LINE_PATTERN.match(line)
            if not match:
                continue
            key = FIELD_ALIASES.get(match.group(1).strip().lower())
            value = match.group(2).strip()
            if key and value and key not in fields:
                fields[key] = value
        return fields

    @staticmethod
    def _split(value: Optional[str]) -> List[str]:
        ordered: List[str] = []
        seen = set()
        for part in _SPLIT_PATTERN.split(str(value or "")):
            text = part.strip()
            if text and text.lower() not in seen:
                seen.add(text.lower())
                ordered.append(text)
        return ordered

    @staticmethod
    def _parse_year(value: Optional[str]) -> Optional[int]:
        match = _YEAR_PATTERN.search(str(value or ""))
        return int(match.group()) if match else None

    @staticmethod
    def _parse_rating(value: Optional[str]) -> float:
        match = _RATING_PATTERN.search(str(value or ""))
        if not match:
            return 0.0
        rating = float(match.group(1))
        scale = match.group(2)
        if scale and float(scale) > 0:
            rating = rating * 10.0 / float(scale)
        return round(max(0.0, min(10.0, rating)), 1)

    def normalize(self, detail: RawItemDetail) -> CatalogItem:
        """
        归一化单条详情

        Raises:
            ValueError: 标题缺失时
        """
        fields = self.parse_fields(detail.raw_content)

        title = str(detail.title or fields.get("title") or "").strip()
        if not title:
            raise ValueError(f"Detail at {detail.url} has no title")

        year = detail.year if detail.year is not None else self._parse_year(fields.get("year"))
        description = str(detail.description or fields.get("description") or "").strip()
        classification = str(fields.get("classification") or "NR").strip().upper() or "NR"

        return CatalogItem(
            title=title,
            year=year,
            tags=self._split(fields.get("tags")),
            rating=self._parse_rating(fields.get("rating")),
            creator=str(fields.get("creator") or "").strip(),
            description=description,
            classification=classification,
            themes=self._split(fields.get("themes")),
            poster_url=fields.get("poster_url") or None,
        )
