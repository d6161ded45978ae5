from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, List, Optional

from bcxliff.confidence import AITranslationCandidate, confidence_level, score_candidates
from bcxliff.context import ElementContext, classify_context
from bcxliff.errors import InvalidInputError, TranslationError
from bcxliff.logger import get_logger
from bcxliff.matcher import find_candidates, find_candidates_from_dom, format_candidate
from bcxliff.mutator import apply_first_translation, apply_translation
from bcxliff.translation import TranslationPipeline
from ai.client import LLMClient

logger = get_logger(__name__)

app = FastAPI(title="BC XLIFF Assistant")

# Allow CORS for dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ContextModel(BaseModel):
    element_type: str = ""
    property_type: str = ""
    ui_area: str = ""
    html_tag: str = ""
    aria_role: str = ""
    aria_label: str = ""
    title_attribute: str = ""
    placeholder: str = ""
    inner_text: str = ""
    translated_text: str = ""
    is_tooltip: Optional[bool] = None
    page_name: str = ""
    page_id: Optional[int] = None
    table_name: str = ""
    source_table_id: Optional[int] = None
    data_attributes: Optional[Any] = None

    def to_context(self) -> ElementContext:
        record = {
            "elementType": self.element_type,
            "propertyType": self.property_type,
            "uiArea": self.ui_area,
            "htmlTag": self.html_tag,
            "ariaRole": self.aria_role,
            "ariaLabel": self.aria_label,
            "titleAttribute": self.title_attribute,
            "placeholder": self.placeholder,
            "innerText": self.inner_text,
            "isToolTip": self.is_tooltip,
            "dataAttributes": self.data_attributes,
        }
        return ElementContext.from_record(
            record,
            source=self.translated_text,
            page_name=self.page_name,
            page_id=self.page_id,
            table_name=self.table_name,
            source_table_id=self.source_table_id,
        )


class MatchRequest(BaseModel):
    document: str
    context: ContextModel = Field(default_factory=ContextModel)
    text: Optional[str] = None


class ApplyRequest(BaseModel):
    document: str
    unit_id: str
    text: str
    confidence: float = 1.0
    translation_source: str = "userCorrection"


class ApplyFirstRequest(BaseModel):
    document: str
    source_text: str
    text: str
    confidence: float = 0.9
    translation_source: str = "aiTranslator"


class CandidateModel(BaseModel):
    text: str
    token_logprobs: List[float] = Field(default_factory=list)


class ScoreRequest(BaseModel):
    source: str
    candidates: List[CandidateModel]


class TranslateRequest(BaseModel):
    text: str
    source_lang: str = "en-US"
    target_lang: str = "cs-CZ"
    num_options: int = 1
    provider: str = "mock"


@app.post("/api/classify")
async def classify(ctx: ContextModel):
    return classify_context(ctx.to_context())


@app.post("/api/match")
async def match(req: MatchRequest):
    context = req.context.to_context()
    if req.text:
        result = find_candidates(req.document, req.text, context)
    else:
        result = find_candidates_from_dom(req.document, context)
    return {
        "candidates": [dict(c.to_dict(), label=format_candidate(c)) for c in result.candidates],
        "diagnostics": result.diagnostics.to_dict(),
    }


@app.post("/api/apply")
async def apply(req: ApplyRequest):
    result = apply_translation(req.document, req.unit_id, req.text, req.confidence, req.translation_source)
    return {"document": result.document, "changed": result.changed}


@app.post("/api/apply-first")
async def apply_first(req: ApplyFirstRequest):
    result = apply_first_translation(req.document, req.source_text, req.text, req.confidence,
                                     req.translation_source)
    return {"document": result.document, "changed": result.changed, "unit_id": result.unit_id}


@app.post("/api/score")
async def score(req: ScoreRequest):
    candidates = [AITranslationCandidate(text=c.text, token_logprobs=c.token_logprobs) for c in req.candidates]
    scores = score_candidates(req.source, candidates)
    return {
        "results": [
            {"text": c.text, "confidence": s, "level": confidence_level(s)}
            for c, s in zip(candidates, scores)
        ]
    }


@app.post("/api/translate")
async def translate(req: TranslateRequest):
    pipeline = TranslationPipeline(LLMClient(provider=req.provider))
    try:
        result = pipeline.translate(req.text, req.source_lang, req.target_lang, req.num_options)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TranslationError as e:
        logger.error(f"Translate endpoint failed: {e.backend_message}")
        raise HTTPException(status_code=502, detail=str(e))
    return {
        "text": result.text,
        "confidence": result.confidence,
        "source": result.source_label,
        "state": result.state.value,
        "options": [{"text": o.text, "confidence": o.confidence} for o in result.options],
        "history": [s.value for s in result.history],
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
