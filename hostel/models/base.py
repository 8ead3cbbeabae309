from datetime import date, datetime, timezone
from typing import Any
from bson.objectid import ObjectId
from mongoengine import Document, DateTimeField, EmbeddedDocument


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseDocumentMixin:
    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, Document):
            return value.to_output() if hasattr(value, "to_output") else str(value.id)
        elif isinstance(value, EmbeddedDocument):
            value = {k: self._sanitize_value(getattr(value, k)) for k in value._fields}
        if isinstance(value, list):
            return [self._sanitize_value(v) for v in value]
        if isinstance(value, dict):
            return {k: self._sanitize_value(v) for k, v in value.items()}
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, ObjectId):
            return str(value)
        return value

    def to_output(self, fields=None, exclude=None):
        data: dict[str, Any] = {}
        exclude = exclude or []
        fields = fields or self._fields.keys()

        for field in fields:
            if field in exclude or field == "id":
                continue
            value = getattr(self, field)
            data[field] = self._sanitize_value(value)

        data["id"] = str(self.id)
        return data

    def to_dict(self, fields=None, exclude=None):
        return self.to_output(fields=fields, exclude=exclude)


class BaseDocument(Document, BaseDocumentMixin):
    created_at = DateTimeField(default=utcnow, null=False)
    updated_at = DateTimeField(default=utcnow, null=False)

    meta = {
        "abstract": True,
    }

    def save(self, *args, **kwargs):
        self.updated_at = utcnow()
        return super().save(*args, **kwargs)

    @classmethod
    def conditional_update(cls, pk: Any, predicate: dict[str, Any], mutation: dict[str, Any]) -> bool:
        """Apply `mutation` to document `pk` only if it still matches `predicate`.

        This is a single server-side update, so the check and the write cannot
        interleave with another writer. Returns True when the document matched.
        """
        mutation = {**mutation, "set__updated_at": utcnow()}
        matched = cls.objects(pk=pk, **predicate).update_one(**mutation)
        return matched == 1
