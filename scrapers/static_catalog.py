"""
Static Catalog Source
内存目录数据源 - 内置示例影片库，用于离线演示与测试
"""
import re
from typing import Any, Dict, List, Optional
import logging

from .base import BaseCatalogSource
from models import CatalogLink, Provenance, RawItemDetail


logger = logging.getLogger(__name__)


SAMPLE_CATALOG: List[Dict[str, Any]] = [
    {
        "title": "Blade Runner 2049",
        "year": 2017,
        "genres": ["Science Fiction", "Drama", "Thriller"],
        "rating": 8.0,
        "director": "Denis Villeneuve",
        "classification": "R",
        "themes": ["Artificial Intelligence", "Identity", "Future dystopia"],
        "description": "A young blade runner's discovery of a long-buried secret leads him to track down former blade runner Rick Deckard.",
        "related": ["arrival", "ex-machina", "the-matrix"],
    },
    {
        "title": "Arrival",
        "year": 2016,
        "genres": ["Science Fiction", "Drama"],
        "rating": 7.9,
        "director": "Denis Villeneuve",
        "classification": "PG-13",
        "themes": ["Communication", "Time", "Language", "First contact"],
        "description": "A linguist works with the military to communicate with alien lifeforms after twelve mysterious spacecraft land around the world.",
        "related": ["interstellar", "contact", "blade-runner-2049"],
    },
    {
        "title": "Interstellar",
        "year": 2014,
        "genres": ["Science Fiction", "Drama", "Adventure"],
        "rating": 8.6,
        "director": "Christopher Nolan",
        "classification": "PG-13",
        "themes": ["Space exploration", "Time dilation", "Family bonds", "Survival"],
        "description": "A team of explorers travel through a wormhole in space in an attempt to ensure humanity's survival.",
        "related": ["the-martian", "gravity", "contact"],
    },
    {
        "title": "The Martian",
        "year": 2015,
        "genres": ["Science Fiction", "Drama", "Adventure"],
        "rating": 8.0,
        "director": "Ridley Scott",
        "classification": "PG-13",
        "themes": ["Survival", "Problem solving", "Optimism", "Science"],
        "description": "An astronaut becomes stranded on Mars after his team assume him dead, and must rely on his ingenuity to find a way to signal to Earth.",
        "related": ["interstellar", "apollo-13", "gravity"],
    },
    {
        "title": "WALL-E",
        "year": 2008,
        "genres": ["Animation", "Science Fiction", "Family"],
        "rating": 8.4,
        "director": "Andrew Stanton",
        "classification": "G",
        "themes": ["Environmental", "Love", "Technology", "Hope"],
        "description": "In the distant future, a small waste-collecting robot inadvertently embarks on a space journey that will decide the fate of mankind.",
        "related": ["up", "finding-nemo", "the-iron-giant"],
    },
    {
        "title": "Paddington 2",
        "year": 2017,
        "genres": ["Comedy", "Family", "Adventure"],
        "rating": 7.8,
        "director": "Paul King",
        "classification": "PG",
        "themes": ["Kindness", "Community", "Family bonds"],
        "description": "Paddington picks up a series of odd jobs to buy the perfect present for his Aunt Lucy, but it is stolen.",
        "related": ["up", "the-princess-bride"],
    },
    {
        "title": "Ex Machina",
        "year": 2014,
        "genres": ["Science Fiction", "Drama", "Thriller"],
        "rating": 7.7,
        "director": "Alex Garland",
        "classification": "R",
        "themes": ["Artificial Intelligence", "Consciousness", "Ethics"],
        "description": "A young programmer is selected to participate in a ground-breaking experiment in synthetic intelligence.",
        "related": ["blade-runner-2049", "the-matrix"],
    },
    {
        "title": "The Matrix",
        "year": 1999,
        "genres": ["Science Fiction", "Action"],
        "rating": 8.7,
        "director": "Lana Wachowski, Lilly Wachowski",
        "classification": "R",
        "themes": ["Reality vs simulation", "Rebellion", "Philosophy"],
        "description": "A computer hacker learns about the true nature of reality and his role in the war against its controllers.",
        "related": ["ex-machina", "inception"],
    },
    {
        "title": "Contact",
        "year": 1997,
        "genres": ["Science Fiction", "Drama", "Mystery"],
        "rating": 7.5,
        "director": "Robert Zemeckis",
        "classification": "PG",
        "themes": ["First contact", "Faith", "Science"],
        "description": "Astronomer.",
        "related": ["arrival", "interstellar"],
    },
    {
        "title": "Gravity",
        "year": 2013,
        "genres": ["Science Fiction", "Thriller", "Drama"],
        "rating": 7.7,
        "director": "Alfonso Cuaron",
        "classification": "PG-13",
        "themes": ["Survival", "Isolation", "Resilience", "Space"],
        "description": "Two astronauts work together to survive after an accident leaves them stranded in space.",
        "related": ["the-martian", "apollo-13"],
    },
    {
        "title": "Apollo 13",
        "year": 1995,
        "genres": ["Drama", "History", "Adventure"],
        "rating": 7.7,
        "director": "Ron Howard",
        "classification": "PG",
        "themes": ["Problem solving", "Teamwork", "Space exploration"],
        "description": "NASA must devise a strategy to return Apollo 13 to Earth safely after the spacecraft undergoes massive internal damage.",
        "related": ["the-martian", "hidden-figures"],
    },
    {
        "title": "Hidden Figures",
        "year": 2016,
        "genres": ["Drama", "History", "Biography"],
        "rating": 7.8,
        "director": "Theodore Melfi",
        "classification": "PG",
        "themes": ["Science", "Perseverance", "Equality"],
        "description": "The story of a team of female African-American mathematicians who served a vital role in NASA during the early years of the space program.",
        "related": ["apollo-13"],
    },
    {
        "title": "Up",
        "year": 2009,
        "genres": ["Animation", "Adventure", "Family"],
        "rating": 8.3,
        "director": "Pete Docter",
        "classification": "PG",
        "themes": ["Grief", "Adventure", "Friendship"],
        "description": "Seventy-eight year old Carl sets out to fulfil his lifelong dream by tying thousands of balloons to his house.",
        "related": ["wall-e", "finding-nemo", "paddington-2"],
    },
    {
        "title": "Finding Nemo",
        "year": 2003,
        "genres": ["Animation", "Adventure", "Comedy"],
        "rating": 8.2,
        "director": "Andrew Stanton",
        "classification": "G",
        "themes": ["Family bonds", "Courage", "Ocean"],
        "description": "A clown fish.",
        "related": ["up", "wall-e"],
    },
    {
        "title": "The Iron Giant",
        "year": 1999,
        "genres": ["Animation", "Science Fiction", "Family"],
        "rating": 8.1,
        "director": "Brad Bird",
        "classification": "PG",
        "themes": ["Friendship", "Identity", "Technology"],
        "description": "A young boy befriends a giant robot from outer space that a paranoid government agent wants to destroy.",
        "related": ["wall-e"],
    },
    {
        "title": "The Princess Bride",
        "year": 1987,
        "genres": ["Adventure", "Comedy", "Fantasy"],
        "rating": 8.0,
        "director": "Rob Reiner",
        "classification": "PG",
        "themes": ["True love", "Adventure", "Humor"],
        "description": "A bedridden boy's grandfather reads him the story of a farmboy-turned-pirate who encounters numerous obstacles to be reunited with his true love.",
        "related": ["paddington-2"],
    },
    {
        "title": "Inception",
        "year": 2010,
        "genres": ["Science Fiction", "Action", "Thriller"],
        "rating": 8.8,
        "director": "Christopher Nolan",
        "classification": "PG-13",
        "themes": ["Dreams", "Reality vs simulation", "Grief"],
        "description": "A thief who steals corporate secrets through dream-sharing technology is given the inverse task of planting an idea.",
        "related": ["the-matrix", "interstellar"],
    },
]


def slugify(title: str) -> str:
    """标题转为 URL 片段"""
    return re.sub(r"[^a-z0-9]+", "-", str(title or "").lower()).strip("-")


def render_raw_content(entry: Dict[str, Any]) -> str:
    """把目录条目渲染为 "Key: value" 文本"""
    lines = [
        f"Title: {entry.get('title', '')}",
        f"Year: {entry.get('year', '')}",
        f"Genres: {', '.join(entry.get('genres', []))}",
        f"Rating: {entry.get('rating', '')}",
        f"Director: {entry.get('director', '')}",
        f"Classification: {entry.get('classification', '')}",
        f"Themes: {', '.join(entry.get('themes', []))}",
        f"Description: {entry.get('description', '')}",
    ]
    return "\n".join(lines)


class StaticCatalogSource(BaseCatalogSource):
    """
    内存目录数据源

    特性:
    - 入口地址下的前 initial_count 条作为初始链接
    - 其余条目只能通过详情页的相关链接发现
    - 未知链接返回只含标题的部分记录
    """

    def __init__(
        self,
        entries: Optional[List[Dict[str, Any]]] = None,
        base_url: str = "catalog://movies",
        initial_count: int = 6,
    ):
        self.base_url = base_url.rstrip("/")
        self.initial_count = initial_count
        self._entries: Dict[str, Dict[str, Any]] = {}
        for entry in entries if entries is not None else SAMPLE_CATALOG:
            self._entries[slugify(entry["title"])] = entry

    @property
    def name(self) -> str:
        return "Static Catalog"

    def url_for(self, slug: str) -> str:
        return f"{self.base_url}/{slug}"

    async def list_initial_links(self, seed_url: str) -> List[CatalogLink]:
        if seed_url.rstrip("/") != self.base_url:
            logger.warning(f"[{self.name}] Unknown seed url: {seed_url}")
            return []

        links = [
            self._make_link(entry["title"], self.url_for(slug))
            for slug, entry in list(self._entries.items())[: self.initial_count]
        ]
        self._log_listing(seed_url, len(links))
        return links

    async def fetch_details(self, link: CatalogLink) -> RawItemDetail:
        slug = link.url.rstrip("/").rsplit("/", 1)[-1]
        entry = self._entries.get(slug)
        if entry is None:
            logger.warning(f"[{self.name}] No details for {link.url}, returning partial record")
            return RawItemDetail(title=link.title, url=link.url)

        related = [
            self._make_link(
                self._entries[other]["title"] if other in self._entries else other,
                self.url_for(other),
                Provenance.RELATED,
            )
            for other in entry.get("related", [])
        ]
        return RawItemDetail(
            title=entry["title"],
            url=link.url,
            raw_content=render_raw_content(entry),
            year=entry.get("year"),
            description=entry.get("description"),
            related_links=related,
        )
