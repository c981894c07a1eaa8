"""
Store helper tests
==================
"""

from bson import ObjectId

from database import create_document, migrate_hearts
from feed import like_count
from schemas import Thought


class TestDocuments:
    def test_create_document_from_model(self, db):
        doc = create_document(db, "thought", Thought(message="  Cold beer  "))
        assert isinstance(doc["_id"], ObjectId)
        assert doc["message"] == "Cold beer"
        assert doc["hearts"] == []
        assert doc["userId"] is None
        assert len(doc["editToken"]) == 64

        stored = db["thought"].find_one({"_id": doc["_id"]})
        assert stored["editToken"] == doc["editToken"]



class TestMigrateHearts:
    def test_counters_become_anonymous_likes(self, db):
        legacy = db["thought"].insert_one({"message": "Berlin baby", "hearts": 37}).inserted_id
        empty = db["thought"].insert_one({"message": "My family!"}).inserted_id
        current = db["thought"].insert_one({"message": "Summer", "hearts": [{"userId": ObjectId()}]}).inserted_id

        assert migrate_hearts(db) == 2

        migrated = db["thought"].find_one({"_id": legacy})
        assert migrated["hearts"] == [{"userId": None}] * 37
        assert like_count(migrated) == 37
        assert db["thought"].find_one({"_id": empty})["hearts"] == []
        assert like_count(db["thought"].find_one({"_id": current})) == 1

    def test_second_run_is_a_no_op(self, db):
        db["thought"].insert_one({"message": "Cold beer", "hearts": 2})
        migrate_hearts(db)
        assert migrate_hearts(db) == 0
