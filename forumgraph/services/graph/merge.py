"""Merge scraped page records into the per-entity graphs of a GraphStore.

Every mutation is a triple add, so applying the same record again leaves each
graph unchanged. Native ids are written only when the entity has none yet.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urljoin

from dateutil import parser as date_parser
from pydantic import AnyUrl, TypeAdapter, ValidationError
from rdflib import Graph, Literal, URIRef

from forumgraph.models.records import PageRecord, PageType, Post
from .store import GraphPartition, GraphStore
from .vocab import AS, DC, DCTERMS, FOAF, RDF, SIOC, VCARD, XSD, bind_prefixes

logger = logging.getLogger(__name__)

_uri_adapter = TypeAdapter(AnyUrl)


def is_uri(value: str) -> bool:
    if not value or re.search(r"\s", value):
        return False
    try:
        _uri_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError):
        logger.warning("Unparseable date '%s'", value)
        return None


def set_once(graph: Graph, subject: URIRef, predicate: URIRef, value: Literal) -> None:
    """Add ``subject predicate value`` unless the subject already has that predicate."""
    if graph.value(subject, predicate) is None:
        graph.add((subject, predicate, value))


class GraphMerger:
    def __init__(self, base_url: str, store: GraphStore, *, language: str = "cs") -> None:
        self.base_url = base_url
        self.store = store
        self.language = language
        self.base_sym = URIRef(base_url)
        site = self._get(store.site, base_url)
        site.add((self.base_sym, RDF.type, SIOC.Site))
        store.site.put(base_url, site)

    def apply(self, record: PageRecord) -> None:
        logger.debug("apply(%s %s)", record.type.name, record.url)
        handler = {
            PageType.ROOT: self._add_root,
            PageType.USER: self._add_user,
            PageType.GROUP: self._add_group,
            PageType.FORUM: self._add_forum,
            PageType.THREAD: self._add_thread,
        }.get(record.type)
        if handler is not None:
            handler(record)

    # --- Record types ---
    def _add_root(self, record: PageRecord) -> None:
        site = self._get(self.store.site, self.base_url)
        self._add_text(site, self.base_sym, DC.title, record.title)
        self.store.site.put(self.base_url, site)

    def _add_user(self, record: PageRecord) -> None:
        url = record.url
        user_sym = URIRef(url)
        card_sym = URIRef(url + "#card")
        user = self._get(self.store.users, url)

        user.add((user_sym, RDF.type, SIOC.UserAccount))
        if record.username:
            user.add((user_sym, FOAF.accountName, Literal(record.username)))
        self._add_date(user, user_sym, DCTERMS.created, record.registered)
        if record.phpbbid is not None:
            set_once(user, user_sym, SIOC.id, Literal(record.phpbbid, datatype=XSD.integer))
        self._add_date(user, user_sym, SIOC.last_activity_date, record.last_visit)
        self._add_text(user, user_sym, DC.description, record.signature)
        user.add((user_sym, SIOC.account_of, card_sym))

        user.add((card_sym, RDF.type, FOAF.Person))
        user.add((card_sym, FOAF.account, user_sym))
        if record.username:
            user.add((card_sym, FOAF.nick, Literal(record.username)))
        if record.avatar_src:
            avatar_sym = URIRef(urljoin(self.base_url, record.avatar_src))
            user.add((card_sym, FOAF.img, avatar_sym))
            user.add((user_sym, SIOC.avatar, avatar_sym))
        if record.age and record.age > 0:
            user.add((card_sym, FOAF.age, Literal(record.age, datatype=XSD.integer)))
        if record.www:
            for homepage in re.split(r"[\s,]+", record.www.strip()):
                if is_uri(homepage):
                    user.add((card_sym, FOAF.homepage, URIRef(homepage)))
                elif homepage:
                    logger.warning("Invalid homepage '%s' for user '%s'", homepage, url)
        if record.jabber:
            user.add((card_sym, FOAF.jabberID, Literal(record.jabber)))
        if record.icq:
            user.add((card_sym, FOAF.icqChatID, Literal(record.icq)))
        if record.address:
            address_sym = URIRef(url + "#home")
            user.add((card_sym, RDF.type, VCARD.Individual))
            user.add((card_sym, VCARD.hasAddress, address_sym))
            user.add((address_sym, VCARD["street-address"], Literal(record.address)))

        for group_url in record.groups.values():
            user.add((user_sym, SIOC.member_of, URIRef(group_url)))

        self.store.users.put(url, user)

    def _add_group(self, record: PageRecord) -> None:
        url = record.canonical_url
        group_sym = URIRef(url)
        group = self._get(self.store.groups, url)

        group.add((group_sym, RDF.type, SIOC.Usergroup))
        self._add_text(group, group_sym, DC.title, record.title)
        self._set_id(group, group_sym, record.phpbbid)
        for user_url in record.users:
            group.add((group_sym, SIOC.has_member, URIRef(user_url)))

        self.store.groups.put(url, group)

    def _add_forum(self, record: PageRecord) -> None:
        url = record.canonical_url
        forum_sym = URIRef(url)
        forum = self._get(self.store.forums, url)

        forum.add((forum_sym, RDF.type, SIOC.Forum))
        self._add_text(forum, forum_sym, DC.title, record.title)
        forum.add((forum_sym, SIOC.has_host, self.base_sym))
        self._set_id(forum, forum_sym, record.phpbbid)

        parent_url = record.parent_forum_url
        if parent_url:
            if parent_url == self.base_url:
                site = self._get(self.store.site, self.base_url)
                site.add((self.base_sym, SIOC.host_of, forum_sym))
                self.store.site.put(self.base_url, site)
            else:
                self._link_parent_forum(parent_url, forum, forum_sym)

        self.store.forums.put(url, forum)

    def _add_thread(self, record: PageRecord) -> None:
        url = record.canonical_url
        thread_sym = URIRef(url)
        thread = self._get(self.store.threads, url)

        thread.add((thread_sym, RDF.type, SIOC.Thread))
        self._add_text(thread, thread_sym, DC.title, record.title)
        thread.add((thread_sym, SIOC.has_host, self.base_sym))
        self._set_id(thread, thread_sym, record.phpbbid)

        parent_url = record.parent_forum_url
        if parent_url:
            if parent_url == self.base_url:
                site = self._get(self.store.site, self.base_url)
                site.add((self.base_sym, SIOC.host_of, thread_sym))
                site.add((self.base_sym, SIOC.parent_of, thread_sym))
                self.store.site.put(self.base_url, site)
            else:
                self._link_parent_forum(parent_url, thread, thread_sym)

        for post in record.posts:
            self._add_post(url, thread, thread_sym, post)

        self.store.threads.put(url, thread)

    # --- Helpers ---
    def _add_post(self, thread_url: str, thread: Graph, thread_sym: URIRef, post: Post) -> None:
        if post.phpbbid is None:
            return
        post_sym = URIRef(f"{thread_url}#p{post.phpbbid}")
        thread.add((post_sym, RDF.type, SIOC.Post))
        thread.add((post_sym, SIOC.id, Literal(post.phpbbid, datatype=XSD.integer)))
        self._add_text(thread, post_sym, DC.title, post.title)
        thread.add((post_sym, SIOC.has_container, thread_sym))
        if post.author_url:
            thread.add((post_sym, SIOC.has_creator, URIRef(post.author_url)))
        self._add_date(thread, post_sym, DCTERMS.created, post.created)
        self._add_text(thread, post_sym, SIOC.content, post.content)

        for actor_url in post.likes:
            actor = self._get(self.store.users, actor_url)
            actor.add((URIRef(actor_url), AS.Like, post_sym))
            self.store.users.put(actor_url, actor)

    def _link_parent_forum(self, parent_url: str, child: Graph, child_sym: URIRef) -> None:
        parent_sym = URIRef(parent_url)
        parent = self._get(self.store.forums, parent_url)
        parent.add((parent_sym, SIOC.parent_of, child_sym))
        self.store.forums.put(parent_url, parent)
        child.add((child_sym, SIOC.has_parent, parent_sym))

    def _set_id(self, graph: Graph, subject: URIRef, phpbbid: Optional[int]) -> None:
        if phpbbid is not None:
            set_once(graph, subject, SIOC.id, Literal(phpbbid, datatype=XSD.integer))

    def _add_text(self, graph: Graph, subject: URIRef, predicate: URIRef, text: Optional[str]) -> None:
        if text:
            graph.add((subject, predicate, Literal(text, lang=self.language)))

    def _add_date(self, graph: Graph, subject: URIRef, predicate: URIRef, value: Optional[str]) -> None:
        parsed = parse_date(value)
        if parsed is not None:
            graph.add((subject, predicate, Literal(parsed)))

    @staticmethod
    def _get(partition: GraphPartition, url: str) -> Graph:
        return bind_prefixes(partition.get(url))
