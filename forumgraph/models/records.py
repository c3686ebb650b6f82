from enum import IntEnum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PageType(IntEnum):
    NONE = 0
    ROOT = 1
    FORUM = 2
    THREAD = 3
    POST = 4
    GROUP = 5
    USER = 6


# Page types the crawler follows when they show up as links
CRAWLABLE_TYPES = frozenset({PageType.FORUM, PageType.THREAD, PageType.GROUP, PageType.USER})


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Link(_Record):
    url: str
    type: PageType = PageType.NONE
    title: Optional[str] = None


class Post(_Record):
    """One post of a thread page."""
    phpbbid: Optional[int] = Field(None, description="Native post id (the #p<id> anchor)")
    url: Optional[str] = None
    title: Optional[str] = None
    author_url: Optional[str] = Field(None, alias="authorUrl")
    author_name: Optional[str] = Field(None, alias="authorName")
    created: Optional[str] = Field(None, description="Creation timestamp as scraped")
    content: Optional[str] = Field(None, description="Post body HTML")
    likes: List[str] = Field(default_factory=list, description="URLs of users who liked the post")


class PageRecord(_Record):
    """Structured content of one fetched forum page.

    Produced by a spider and consumed by the graph merger. Fields that do not
    apply to the page type stay empty.
    """
    type: PageType = PageType.NONE
    url: str
    title: Optional[str] = None
    links: List[Link] = Field(default_factory=list)
    phpbbid: Optional[int] = None

    # navigation
    forum_url: Optional[str] = Field(None, alias="forumUrl")
    parent_forum_url: Optional[str] = Field(None, alias="parentForumUrl")

    # pagination
    page: Optional[int] = None
    first_page_url: Optional[str] = Field(None, alias="firstPageUrl")

    # thread / group content
    posts: List[Post] = Field(default_factory=list)
    users: List[str] = Field(default_factory=list, description="Member URLs of a group page")

    # user profile
    username: Optional[str] = None
    avatar_src: Optional[str] = Field(None, alias="avatarSrc")
    rank: Optional[str] = None
    default_group: Optional[str] = Field(None, alias="defaultGroup")
    groups: Dict[str, str] = Field(default_factory=dict, description="Group id -> canonical group URL")
    registered: Optional[str] = None
    last_visit: Optional[str] = Field(None, alias="lastVisit")
    total_posts: Optional[int] = Field(None, alias="totalPosts")
    signature: Optional[str] = None
    address: Optional[str] = None
    show_on_map: bool = Field(False, alias="showOnMap")
    age: Optional[int] = None
    occupation: Optional[str] = None
    interests: Optional[str] = None
    profession: Optional[str] = None
    icq: Optional[str] = None
    www: Optional[str] = None
    jabber: Optional[str] = None
    likes_got: Optional[int] = Field(None, alias="likesGot")
    likes_gave: Optional[int] = Field(None, alias="likesGave")

    @property
    def canonical_url(self) -> str:
        """First-page URL for paginated pages, the page URL otherwise."""
        if self.page and self.page > 0 and self.first_page_url:
            return self.first_page_url
        return self.url
