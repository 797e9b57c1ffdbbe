"""
Blogs del sitio y sus comentarios (Mongo).

Las imágenes no pasan por aquí: el blog guarda solo `imageUrl`, la URL
de un archivo ya subido.
"""
import logging
from datetime import datetime, timezone

from pymongo import DESCENDING

from crud import get_by_id, insert_document, parse_object_id, to_json, update_document
from errors import NotFound

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]


class BlogService:
    def __init__(self, store):
        self.store = store

    def _get(self, blog_id):
        blog = get_by_id(self.store.blogs, blog_id)
        if not blog:
            raise NotFound("Blog not found", reason="blog")
        return blog

    # -----------------------
    # BLOGS
    # -----------------------
    def create_blog(self, data) -> dict:
        now = datetime.now(timezone.utc)
        doc = data.model_dump()
        doc.update({"createdAt": now, "updatedAt": now})
        insert_document(self.store.blogs, doc)
        logger.info(f"Blog creado: {doc['title']} ({doc['_id']})")
        return to_json(doc)

    def list_blogs(self):
        return [to_json(b) for b in self.store.blogs.find().sort(NEWEST_FIRST)]

    def get_blog(self, blog_id) -> dict:
        return to_json(self._get(blog_id))

    def list_by_category(self, category):
        blogs = [to_json(b) for b in self.store.blogs.find({"category": category}).sort(NEWEST_FIRST)]
        if not blogs:
            raise NotFound("No blogs found in this category", reason="blog")
        return blogs

    def update_blog(self, blog_id, changes) -> dict:
        self._get(blog_id)
        # Campos vacíos conservan el valor anterior
        data = {k: v for k, v in changes.model_dump().items() if v}
        data["updatedAt"] = datetime.now(timezone.utc)
        update_document(self.store.blogs, blog_id, data)
        return self.get_blog(blog_id)

    def delete_blog(self, blog_id):
        oid = parse_object_id(blog_id)
        deleted = self.store.blogs.find_one_and_delete({"_id": oid}) if oid else None
        if not deleted:
            raise NotFound("Blog not found", reason="blog")
        removed = self.store.comments.delete_many({"blogId": oid}).deleted_count
        logger.info(f"Blog eliminado: {blog_id} ({removed} comentarios)")
        return to_json(deleted)

    # -----------------------
    # COMENTARIOS
    # -----------------------
    def post_comment(self, blog_id, comment) -> dict:
        blog = self._get(blog_id)
        doc = comment.model_dump()
        doc.update({"blogId": blog["_id"], "createdAt": datetime.now(timezone.utc)})
        insert_document(self.store.comments, doc)
        return to_json(doc)

    def list_comments(self, blog_id):
        oid = parse_object_id(blog_id)
        cursor = self.store.comments.find({"blogId": oid}).sort(NEWEST_FIRST) if oid else []
        comments = [to_json(c) for c in cursor]
        if not comments:
            raise NotFound("No comments found for this blog", reason="comment")
        return comments
