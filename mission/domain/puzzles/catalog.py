# mission/domain/puzzles/catalog.py
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from mission.domain.common.types import LocationId

BLUE_HOUSE: LocationId = "blue_house"
SAN_FRANCISCO: LocationId = "san_francisco"
FRANCE: LocationId = "france"
INCHEON_AIRPORT: LocationId = "incheon_airport"

# Fixed mission order; the first entry is pre-unlocked for every team
LOCATION_ORDER: Tuple[LocationId, ...] = (BLUE_HOUSE, SAN_FRANCISCO, FRANCE, INCHEON_AIRPORT)
FIRST_LOCATION: LocationId = LOCATION_ORDER[0]


class RelatedLink(BaseModel):
    title: str
    url: str


class SubPuzzle(BaseModel):
    id: str
    title: str
    answer: str
    image_url: str = ""
    related_link: Optional[RelatedLink] = None


class FinalStage(BaseModel):
    description: str = ""
    answer: str
    image_url: str = ""
    placeholder: str = ""


class PuzzleData(BaseModel):
    """
    Static content for one location.
    Media and copy are opaque to the game core; only ids, answers and chaining matter.
    """
    id: LocationId
    title: str
    question: str = ""
    answer: str = ""
    sub_puzzles: List[SubPuzzle] = Field(default_factory=list)
    final_stage: Optional[FinalStage] = None
    next_location_id: Optional[LocationId] = None
    hint_context: str = ""
    is_bomb: bool = False

    @property
    def sub_puzzle_ids(self) -> List[str]:
        return [sp.id for sp in self.sub_puzzles]

    def sub_puzzle(self, sub_id: str) -> Optional[SubPuzzle]:
        for sp in self.sub_puzzles:
            if sp.id == sub_id:
                return sp
        return None


PUZZLES: Dict[LocationId, PuzzleData] = {
    BLUE_HOUSE: PuzzleData(
        id=BLUE_HOUSE,
        title="대한민국 청와대",
        question="암호를 해독하여 도시 이름을 알아내시오.",
        answer="샌프란시스코",
        next_location_id=SAN_FRANCISCO,
        hint_context="사람 이름을 찾아내세요. APPLE과 관련이 있습니다. 그가 미국의 어느 도시에서 태어났을까요?",
    ),
    SAN_FRANCISCO: PuzzleData(
        id=SAN_FRANCISCO,
        title="미국 샌프란시스코",
        question="3개의 보안 코드를 해독하여 좌표를 입력하시오.",
        answer="프랑스",
        sub_puzzles=[
            SubPuzzle(id="codeA-1", title="보안 코드 A-1", answer="1004"),
            SubPuzzle(id="codeA-2", title="보안 코드 A-2", answer="1782"),
            SubPuzzle(id="codeA-3", title="보안 코드 A-3", answer="1777"),
        ],
        final_stage=FinalStage(
            description="다음 핵폭탄의 위치를 입력하고 다음 장소로 이동해주세요.",
            answer="프랑스",
            placeholder="국가 이름",
        ),
        next_location_id=FRANCE,
        hint_context="A-1: 키보드 특수문자 위치. A-2: 컬러바 색상 코드. A-3: 켄켄 퍼즐과 가우스.",
        is_bomb=True,
    ),
    FRANCE: PuzzleData(
        id=FRANCE,
        title="프랑스 파리",
        question="보안 코드를 모두 해제하고 다음 행선지를 입력하시오.",
        answer="인천공항",
        sub_puzzles=[
            SubPuzzle(id="codeB-1", title="보안 코드 B-1", answer="ican"),
            SubPuzzle(id="codeB-2", title="보안 코드 B-2", answer="unlock"),
            SubPuzzle(
                id="codeB-3",
                title="보안 코드 B-3",
                answer="thecode",
                related_link=RelatedLink(title="존 라크의 음성녹음파일", url=""),
            ),
        ],
        final_stage=FinalStage(
            description="존 라크의 마지막 행선지를 파악하여 추적을 완료하십시오.",
            answer="인천공항",
            placeholder="공항 이름",
        ),
        next_location_id=INCHEON_AIRPORT,
        hint_context="B-1: 트럼프 카드 문양 이름. B-2: 스도쿠 후 알파벳 표. B-3: 음성을 거꾸로 재생.",
        is_bomb=True,
    ),
    INCHEON_AIRPORT: PuzzleData(
        id=INCHEON_AIRPORT,
        title="대한민국 인천공항",
        question="마지막 3개의 보안 코드를 해독하십시오.",
        answer="completed",
        sub_puzzles=[
            SubPuzzle(id="codeC-1", title="보안 코드 C-1", answer="3031"),
            SubPuzzle(id="codeC-2", title="보안 코드 C-2", answer="2010"),
            SubPuzzle(id="codeC-3", title="보안 코드 C-3", answer="0219"),
        ],
        hint_context="C-1: 6월과 8월의 마지막 날짜. C-2: 글자 속 네모의 개수. C-3: 절기 '우수'의 날짜.",
        is_bomb=True,
    ),
}


def get_puzzle(location_id: Optional[LocationId]) -> Optional[PuzzleData]:
    if not location_id:
        return None
    return PUZZLES.get(location_id)

