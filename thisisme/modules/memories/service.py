from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
from thisisme.core.dependencies import check_chapter_member
from thisisme.modules.chapters.models import CHAPTER_TYPE_PRIVATE
from thisisme.modules.memories.models import COLLABORATION_ACCEPTED
from thisisme.modules.memories.schemas import MemoryCreate, MemoryUpdate, MemoryResponse
import logging

logger = logging.getLogger(__name__)


class MemoryService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_memory(self, memory_id: str) -> Dict[str, Any]:
        result = self.supabase.table("memories")\
            .select("*")\
            .eq("id", memory_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Memory not found")
        return result.data[0]

    def _get_tags(self, memory_ids: List[str]) -> Dict[str, List[str]]:
        if not memory_ids:
            return {}
        result = self.supabase.table("memory_tags")\
            .select("memory_id, tagged_person_id")\
            .in_("memory_id", memory_ids)\
            .execute()
        tags: Dict[str, List[str]] = {}
        for row in result.data or []:
            tags.setdefault(row["memory_id"], []).append(row["tagged_person_id"])
        return tags

    def _default_chapter_id(self, user_id: str) -> Optional[str]:
        result = self.supabase.table("timezones")\
            .select("id")\
            .eq("creator_id", user_id)\
            .eq("type", CHAPTER_TYPE_PRIVATE)\
            .order("created_at")\
            .limit(1)\
            .execute()
        return result.data[0]["id"] if result.data else None

    def _replace_tags(self, memory_id: str, person_ids: List[str]) -> List[str]:
        self.supabase.table("memory_tags").delete().eq("memory_id", memory_id).execute()
        unique_ids = list(dict.fromkeys(person_ids))
        if unique_ids:
            self.supabase.table("memory_tags").insert([
                {"memory_id": memory_id, "tagged_person_id": person_id} for person_id in unique_ids
            ]).execute()
        return unique_ids

    def list_memories(self, user_id: str) -> List[MemoryResponse]:
        try:
            result = self.supabase.table("memories")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            memories = result.data or []
            tags = self._get_tags([m["id"] for m in memories])
            return [MemoryResponse(**m, tagged_people=tags.get(m["id"], [])) for m in memories]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_memory(self, memory_data: MemoryCreate, user_data: dict) -> MemoryResponse:
        """Create a memory; falls back to the user's private chapter when none is given"""
        user_id = user_data["id"]
        chapter_id = memory_data.chapter_id or self._default_chapter_id(user_id)
        if chapter_id:
            check_chapter_member(chapter_id, user_data, self.supabase)
        try:
            result = self.supabase.table("memories").insert({
                "user_id": user_id,
                "chapter_id": chapter_id,
                "title": memory_data.title,
                "text_content": memory_data.text_content,
                "approximate_date": memory_data.approximate_date,
                "date_precision": memory_data.date_precision,
                "memory_date": memory_data.memory_date.isoformat() if memory_data.memory_date else None,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create memory")
            memory = result.data[0]
            tagged = self._replace_tags(memory["id"], memory_data.tagged_people)
            logger.info(f"Memory {memory['id']} created by {user_id}")
            return MemoryResponse(**memory, tagged_people=tagged)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_memory(self, memory_id: str, user_data: dict) -> MemoryResponse:
        """Owner, any member of the memory's chapter, or an accepted collaborator"""
        memory = self._get_memory(memory_id)
        if memory["user_id"] != user_data["id"]:
            collaborator = self.supabase.table("memory_collaborations")\
                .select("id")\
                .eq("memory_id", memory_id)\
                .eq("collaborator_id", user_data["id"])\
                .eq("status", COLLABORATION_ACCEPTED)\
                .limit(1)\
                .execute()
            if not collaborator.data:
                if not memory.get("chapter_id"):
                    raise HTTPException(status_code=403, detail="Memory not accessible")
                check_chapter_member(memory["chapter_id"], user_data, self.supabase)
        tags = self._get_tags([memory_id])
        return MemoryResponse(**memory, tagged_people=tags.get(memory_id, []))

    def _require_owner(self, memory_id: str, user_id: str) -> Dict[str, Any]:
        memory = self._get_memory(memory_id)
        if memory["user_id"] != user_id:
            raise HTTPException(status_code=403, detail="Only the author can modify this memory")
        return memory

    def update_memory(self, memory_id: str, memory_data: MemoryUpdate, user_data: dict) -> MemoryResponse:
        self._require_owner(memory_id, user_data["id"])
        update_data = memory_data.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No fields to update")
        if update_data.get("chapter_id"):
            check_chapter_member(update_data["chapter_id"], user_data, self.supabase)
        if update_data.get("memory_date"):
            update_data["memory_date"] = update_data["memory_date"].isoformat()
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            result = self.supabase.table("memories")\
                .update(update_data)\
                .eq("id", memory_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Memory not found")
            tags = self._get_tags([memory_id])
            return MemoryResponse(**result.data[0], tagged_people=tags.get(memory_id, []))
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_memory(self, memory_id: str, user_id: str) -> bool:
        self._require_owner(memory_id, user_id)
        try:
            for table in ("memory_tags", "memory_collaborations", "memory_contributions"):
                self.supabase.table(table).delete().eq("memory_id", memory_id).execute()
            self.supabase.table("memories").delete().eq("id", memory_id).execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def set_tags(self, memory_id: str, person_ids: List[str], user_id: str) -> MemoryResponse:
        """Replace the people tagged on a memory. Every person must be in the owner's network."""
        memory = self._require_owner(memory_id, user_id)
        if person_ids:
            owned = self.supabase.table("user_networks")\
                .select("id")\
                .eq("owner_id", user_id)\
                .in_("id", person_ids)\
                .execute()
            owned_ids = {p["id"] for p in (owned.data or [])}
            missing = [p for p in person_ids if p not in owned_ids]
            if missing:
                raise HTTPException(status_code=404, detail=f"People not found in your network: {', '.join(missing)}")
        tagged = self._replace_tags(memory_id, person_ids)
        return MemoryResponse(**memory, tagged_people=tagged)
