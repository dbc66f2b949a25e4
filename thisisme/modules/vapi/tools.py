"""
Assistant tool implementations.

Each tool takes the call parameters and the resolved user id and returns a
dict whose ``result`` key is the sentence the assistant reads back. Problems
the caller can fix are raised as ``ToolError`` with a 4xx status; the
dispatcher decides how to surface them for each payload format.
"""

from supabase import Client
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from thisisme.modules.chapters.models import CHAPTER_TYPE_PRIVATE
from thisisme.modules.chapters.service import ChapterService
from thisisme.modules.vapi.models import (
    TOOL_SAVE_MEMORY, TOOL_SEARCH_MEMORIES, TOOL_GET_USER_CONTEXT, TOOL_UPLOAD_MEDIA,
    TOOL_CREATE_CHAPTER, TOOL_SAVE_BIRTH_YEAR, UPLOAD_INSTRUCTIONS
)
import logging

logger = logging.getLogger(__name__)

ToolResult = Dict[str, Any]


class ToolError(Exception):
    def __init__(self, status_code: int, error: str, result: str):
        self.status_code = status_code
        self.error = error
        self.result = result
        super().__init__(error)

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.error, "result": self.result, "success": False}


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _current_year() -> int:
    return datetime.now(timezone.utc).year


def approximate_date_for(timeframe: Optional[str], age: Optional[int], year: Optional[int],
                         birth_year: Optional[int]) -> Optional[str]:
    """Timeframe wins, then age (with the calendar year when the birth year is known), then year."""
    if timeframe:
        return timeframe
    if age is not None and birth_year:
        return f"Age {age} ({birth_year + age})"
    if age is not None:
        return f"Age {age}"
    if year is not None:
        return str(year)
    return None


def build_memory_content(content: str, location: Optional[str], people: Optional[List[str]],
                         sensory_details: Optional[str]) -> str:
    full = content or ""
    if location:
        full += f"\n\nLocation: {location}"
    if people:
        full += f"\n\nPeople: {', '.join(people)}"
    if sensory_details:
        full += f"\n\nDetails: {sensory_details}"
    return full


def group_by_date(memories: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for memory in memories:
        groups.setdefault(memory.get("approximate_date") or "Unknown time", []).append(memory)
    return groups


def _require_user(user_id: Optional[str], action: str) -> str:
    if not user_id:
        raise ToolError(
            400,
            "User identification required",
            f"I need to know who you are to {action}. Please configure user identification in VAPI.",
        )
    return user_id


class VapiTools:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.handlers: Dict[str, Callable[[Dict[str, Any], Optional[str]], ToolResult]] = {
            TOOL_SAVE_MEMORY: self.save_memory,
            TOOL_SEARCH_MEMORIES: self.search_memories,
            TOOL_GET_USER_CONTEXT: self.get_user_context,
            TOOL_UPLOAD_MEDIA: self.upload_media,
            TOOL_CREATE_CHAPTER: self.create_chapter,
            TOOL_SAVE_BIRTH_YEAR: self.save_birth_year,
        }

    def run(self, name: str, parameters: Dict[str, Any], user_id: Optional[str]) -> ToolResult:
        handler = self.handlers.get(name)
        if handler is None:
            logger.warning(f"Unknown assistant tool {name}")
            return {"result": f"Function {name} not implemented yet"}
        return handler(parameters or {}, user_id)

    def _get_user(self, user_id: str, columns: str = "id, email, birth_year") -> Optional[Dict[str, Any]]:
        result = self.supabase.table("users")\
            .select(columns)\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _find_chapter_id(self, user_id: str, chapter_name: Optional[str]) -> Optional[str]:
        query = self.supabase.table("timezones")\
            .select("id")\
            .eq("creator_id", user_id)
        if chapter_name:
            query = query.ilike("title", f"%{chapter_name}%")
        else:
            query = query.eq("type", CHAPTER_TYPE_PRIVATE)
        result = query.order("created_at").limit(1).execute()
        return result.data[0]["id"] if result.data else None

    def save_memory(self, params: Dict[str, Any], user_id: Optional[str]) -> ToolResult:
        user_id = _require_user(user_id, "save your memories")
        title = params.get("title")
        age, year = _to_int(params.get("age")), _to_int(params.get("year"))
        user = self._get_user(user_id)
        approximate_date = approximate_date_for(
            params.get("timeframe"), age, year, (user or {}).get("birth_year")
        )
        people = params.get("people") or []
        if isinstance(people, str):
            people = [p.strip() for p in people.split(",") if p.strip()]
        chapter = params.get("chapter")
        result = self.supabase.table("memories").insert({
            "title": title or "Voice Memory",
            "text_content": build_memory_content(
                params.get("content") or "", params.get("location"), people, params.get("sensory_details")
            ),
            "user_id": user_id,
            "chapter_id": (chapter and self._find_chapter_id(user_id, chapter)) or self._find_chapter_id(user_id, None),
            "approximate_date": approximate_date,
            "date_precision": "exact" if year is not None else "approximate",
        }).execute()
        memory = result.data[0] if result.data else {}
        logger.info(f"Voice memory {memory.get('id')} saved for {user_id}")

        response = f"Perfect! I've saved \"{title or 'that memory'}\" to your timeline."
        if approximate_date:
            response += f" I've placed it around {approximate_date}."
        if chapter:
            response += f" It's in your {chapter} chapter."
        response += " What else would you like to share?"
        return {"result": response, "memoryId": memory.get("id"), "success": True}

    def search_memories(self, params: Dict[str, Any], user_id: Optional[str]) -> ToolResult:
        user_id = _require_user(user_id, "search your memories")
        query_text = params.get("query")
        timeframe, age, year = params.get("timeframe"), _to_int(params.get("age")), _to_int(params.get("year"))

        query = self.supabase.table("memories")\
            .select("id, title, text_content, approximate_date, created_at")\
            .eq("user_id", user_id)
        if query_text:
            query = query.or_(f"title.ilike.%{query_text}%,text_content.ilike.%{query_text}%")
        term = timeframe or (f"Age {age}" if age is not None else (str(year) if year is not None else None))
        if term:
            query = query.ilike("approximate_date", f"%{term}%")
        memories = query.order("created_at", desc=True).limit(10).execute().data or []

        if not memories:
            if age is not None or year is not None:
                return {
                    "result": "I don't see any memories from that time yet. This would be a great first memory for that period!",
                    "memories": [],
                    "suggested_action": "create_new_chapter",
                }
            return {
                "result": "I couldn't find memories matching that. Tell me more about what you're thinking of.",
                "memories": [],
            }

        groups = group_by_date(memories)
        if (age is not None or year is not None) and len(groups) > 1:
            return {
                "result": (
                    f"I found memories from that time in {len(groups)} different periods: "
                    f"{', '.join(groups)}. Which timeframe does your new memory fit with?"
                ),
                "memories": memories,
                "time_groups": groups,
            }
        listed = ", ".join(
            f"\"{m.get('title')}\"" + (f" ({m['approximate_date']})" if m.get("approximate_date") else "")
            for m in memories[:3]
        )
        return {
            "result": f"I found {len(memories)} related memories: {listed}. Does your new memory connect to any of these?",
            "memories": memories,
            "suggested_action": "organize_with_existing",
        }

    def get_user_context(self, params: Dict[str, Any], user_id: Optional[str]) -> ToolResult:
        user_id = _require_user(user_id, "access your timeline")
        user = self._get_user(user_id, "id, email, birth_year, created_at")
        if not user:
            raise ToolError(404, "User not found", "I can't find your user profile. Please check your VAPI configuration.")
        user_name = (user.get("email") or "").split("@")[0] or "there"
        chapters = self.supabase.table("timezones")\
            .select("id, title, description, start_date, end_date, location")\
            .eq("creator_id", user_id)\
            .order("created_at", desc=True)\
            .execute().data or []
        memories = self.supabase.table("memories")\
            .select("id, title, approximate_date, created_at")\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .limit(50)\
            .execute().data or []
        memory_count = len(memories)
        age, year = _to_int(params.get("age")), _to_int(params.get("year"))

        if params.get("context_type") == "timeline_overview":
            periods = list(group_by_date(memories))
            if periods:
                more = " and more" if len(periods) > 3 else ""
                return {
                    "result": (
                        f"You have memories organized in {len(periods)} time periods: "
                        f"{', '.join(periods[:3])}{more}. What time period is your new memory from?"
                    ),
                    "chapters": periods,
                    "memory_count": memory_count,
                }

        if age is not None or year is not None:
            term = f"Age {age}" if age is not None else str(year)
            needles = [n for n in (term, str(age) if age is not None else None, str(year) if year is not None else None) if n]
            similar = [m for m in memories if any(n in (m.get("approximate_date") or "") for n in needles)]
            if similar:
                titles = ", ".join(m.get("title") or "Untitled" for m in similar[:2])
                return {
                    "result": f"I see you have memories from around that time: {titles}. Does your new memory fit with these or is it from a different period?",
                    "similar_memories": similar,
                    "suggested_timeframe": term,
                }
            return {
                "result": "I don't see any memories from that time yet. This would be a great addition to your timeline!",
                "similar_memories": [],
                "suggested_action": "create_new_timeframe",
            }

        birth_year = user.get("birth_year")
        current_age = _current_year() - birth_year if birth_year else None
        context_info = ""
        if birth_year:
            context_info = (
                f" I know you were born in {birth_year}, so you're currently {current_age}."
                " This helps me place memories on your timeline when you mention ages."
            )
        if chapters:
            names = ", ".join(c["title"] for c in chapters[:3])
            more = " and more" if len(chapters) > 3 else ""
            context_info += (
                f" You have {len(chapters)} chapters in your timeline: {names}{more}."
                " I can help place new memories in existing chapters or suggest creating new ones."
            )
        data = {
            "memory_count": memory_count,
            "user_birth_year": birth_year,
            "user_current_age": current_age,
            "user_name": user_name,
            "chapters": chapters,
            "chapter_count": len(chapters),
            "is_first_memory": memory_count == 0,
        }
        if memory_count == 0:
            result = (
                f"Hi {user_name}! This looks like your first memory! I'm excited to help you start building "
                f"your timeline.{context_info} What would you like to share?"
            )
        else:
            result = f"Hi {user_name}! You have {memory_count} memories in your timeline.{context_info} What new memory would you like to add?"
        return {"result": result, **data}

    def upload_media(self, params: Dict[str, Any], user_id: Optional[str]) -> ToolResult:
        _require_user(user_id, "handle media uploads")
        media_type = params.get("media_type") or "photos"
        memory_id = params.get("memory_id")
        instruction = UPLOAD_INSTRUCTIONS.get(media_type, UPLOAD_INSTRUCTIONS["photos"])
        return {
            "result": f"{instruction} I've noted that you want to add {media_type} to this memory.",
            "upload_url": f"/memories/{memory_id or 'latest'}/upload",
            "media_type": media_type,
            "memory_id": memory_id,
            "action_required": "redirect_to_upload",
        }

    def create_chapter(self, params: Dict[str, Any], user_id: Optional[str]) -> ToolResult:
        title = (params.get("title") or "").strip()
        if not title:
            raise ToolError(400, "Chapter title is required", "I need a title for the chapter. What would you like to call it?")
        start_year, end_year = _to_int(params.get("start_year")), _to_int(params.get("end_year"))
        timeframe, description = params.get("timeframe"), params.get("description")
        if start_year is None and not timeframe and not description:
            raise ToolError(
                400,
                "Insufficient chapter information",
                "I need more details to create this chapter. When did this period of your life happen? "
                "What years or age range should I use?",
            )
        user_id = _require_user(user_id, "access your timeline")
        if not self._get_user(user_id):
            raise ToolError(404, "User not found", "I can't find your account. Please check your VAPI configuration.")

        if not description:
            span = timeframe or (f"{start_year} to {end_year}" if end_year else f"{start_year}")
            description = f"Chapter covering {span}"
        chapter = ChapterService(self.supabase).create_chapter_record(user_id, {
            "title": title,
            "description": description,
            "type": CHAPTER_TYPE_PRIVATE,
            "start_date": f"{start_year}-01-01" if start_year is not None else None,
            "end_date": f"{end_year}-12-31" if end_year is not None else None,
            "location": params.get("location"),
        })
        return {
            "result": f"Perfect! I've created the \"{title}\" chapter for you. Now I can save memories there.",
            "chapterId": chapter["id"],
            "chapterTitle": title,
            "success": True,
        }

    def save_birth_year(self, params: Dict[str, Any], user_id: Optional[str]) -> ToolResult:
        user_id = _require_user(user_id, "save your birth year")
        birth_year = _to_int(params.get("birth_year"))
        if birth_year is None:
            raise ToolError(400, "Birth year is required", "I need your birth year to help organize your memories. What year were you born?")
        self.supabase.table("users").upsert({
            "id": user_id,
            "birth_year": birth_year,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }, on_conflict="id").execute()
        current_age = _current_year() - birth_year
        return {
            "result": (
                f"Perfect! I've saved that you were born in {birth_year}. That makes you {current_age} now. "
                "This will help me organize your memories on the timeline. What memory would you like to share?"
            ),
            "birth_year": birth_year,
            "current_age": current_age,
            "success": True,
        }
