from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

_REQUEST_CONFIG = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True, protected_namespaces=())
_RESPONSE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class JobCreateRequest(BaseModel):
  """Submission payload for a generation job. Semantic checks happen in the orchestrator."""

  source_id: StrictStr = Field(description="Wiki name, e.g. 'naruto' for naruto.fandom.com.", examples=["naruto"])
  group_selectors: list[StrictStr] = Field(default_factory=list, max_length=50, description="Categories whose pages should be processed.")
  individual_locators: list[StrictStr] = Field(default_factory=list, max_length=200, description="Individual page titles to process.")
  call_budget: StrictInt | None = Field(default=None, description="Maximum number of model calls for the job.")
  target_question_density: StrictInt | None = Field(default=None, description="Words of source text per requested question.")
  model_id: StrictStr | None = Field(default=None, description="Catalog model id; the configured default when omitted.")
  prompt_template: StrictStr | None = Field(default=None, max_length=4000, description="Instructions replacing the default prompt instructions.")
  title_name: StrictStr | None = Field(default=None, description="Title to resolve against AniList and attach to questions.")
  temperature: StrictFloat | StrictInt | None = Field(default=None, description="Sampling temperature passed to the model.")
  model_config = _REQUEST_CONFIG


class JobCreateResponse(BaseModel):
  job_id: StrictStr
  model_config = _RESPONSE_CONFIG


class JobLogEntry(BaseModel):
  timestamp: StrictStr
  message: StrictStr
  severity: Literal["info", "success", "warning", "error"]


class JobSnapshotResponse(BaseModel):
  id: StrictStr
  status: Literal["running", "stopping", "completed", "error"]
  progress_percent: int
  calls_made: int
  call_budget: int
  questions_generated: int
  units_total: int
  units_done: int
  units_skipped: int
  units_failed: int
  started_at: StrictStr
  finished_at: StrictStr | None = None
  duration_ms: int | None = None
  cancel_requested: bool
  source_id: StrictStr
  model_id: StrictStr
  title_id: int | None = None
  canonical_title: StrictStr | None = None
  error: StrictStr | None = None
  log: list[JobLogEntry] = Field(default_factory=list)
  model_config = _RESPONSE_CONFIG


class JobListResponse(BaseModel):
  jobs: list[JobSnapshotResponse]
  model_config = _RESPONSE_CONFIG


class ModelInfo(BaseModel):
  id: StrictStr
  provider: Literal["openai", "gemini"]
  label: StrictStr
  description: StrictStr
  supports_function_calling: bool
  supports_structured_output: bool
  model_config = _RESPONSE_CONFIG


class ModelListResponse(BaseModel):
  models: list[ModelInfo]
  default_model: StrictStr
  model_config = _RESPONSE_CONFIG


class RecommendedModelResponse(BaseModel):
  use_case: StrictStr
  model: ModelInfo
  model_config = _RESPONSE_CONFIG


class ProviderHealth(BaseModel):
  provider: StrictStr
  model_id: StrictStr
  ok: bool
  error: StrictStr | None = None
  model_config = _RESPONSE_CONFIG


class ProviderHealthResponse(BaseModel):
  providers: list[ProviderHealth]
  model_config = _RESPONSE_CONFIG


class SourceStatsResponse(BaseModel):
  source_id: StrictStr
  total_done: int
  total_questions: int
  by_group: dict[str, int]
  first_processed_at: StrictStr | None = None
  last_processed_at: StrictStr | None = None
  model_config = _RESPONSE_CONFIG


class NameListResponse(BaseModel):
  items: list[StrictStr]
  model_config = _RESPONSE_CONFIG


class TitleInfo(BaseModel):
  id: int
  canonical_title: StrictStr
  english_title: StrictStr | None = None
  model_config = _RESPONSE_CONFIG


class TitleSearchResponse(BaseModel):
  titles: list[TitleInfo]
  model_config = _RESPONSE_CONFIG


class QuestionItem(BaseModel):
  id: int
  question: StrictStr
  options: list[StrictStr]
  correct_answer_index: int
  repaired: bool
  job_id: StrictStr
  unit_key: StrictStr
  source_id: StrictStr
  group_label: StrictStr
  locator: StrictStr
  sub_unit_label: StrictStr
  model_id: StrictStr
  prompt_template: StrictStr | None = None
  title_id: int | None = None
  canonical_title: StrictStr | None = None
  created_at: StrictStr
  review_score: int | None = None
  reviewed_at: StrictStr | None = None
  model_config = _RESPONSE_CONFIG


class QuestionListResponse(BaseModel):
  questions: list[QuestionItem]
  model_config = _RESPONSE_CONFIG


class QuestionStatsResponse(BaseModel):
  total: int
  by_source: dict[str, int]
  by_group: dict[str, int]
  by_section: dict[str, int]
  by_model: dict[str, int]
  by_title: dict[str, int]
  repaired: int
  model_config = _RESPONSE_CONFIG


class QuestionDeleteRequest(BaseModel):
  question_ids: list[StrictInt] = Field(min_length=1, max_length=500, description="Ids of the questions to delete.")
  model_config = _REQUEST_CONFIG


class QuestionDeleteResponse(BaseModel):
  deleted_count: int
  model_config = _RESPONSE_CONFIG


class ReviewCreateRequest(BaseModel):
  """Start scoring the unreviewed questions of a source."""

  source_id: StrictStr = Field(examples=["naruto"])
  batch_size: StrictInt | None = Field(default=None, description="Questions scored per model call.")
  model_id: StrictStr | None = Field(default=None, description="Catalog model id; the configured review model when omitted.")
  prompt_template: StrictStr | None = Field(default=None, max_length=8000, description="Scoring prompt with {count}, {subject} and {questions} placeholders.")
  max_questions: StrictInt | None = Field(default=None, description="Stop after this many questions.")
  model_config = _REQUEST_CONFIG


class ReviewCreateResponse(BaseModel):
  review_id: StrictStr
  model_config = _RESPONSE_CONFIG


class ReviewSnapshotResponse(BaseModel):
  id: StrictStr
  status: Literal["running", "stopping", "completed", "error"]
  progress_percent: int
  calls_made: int
  batch_size: int
  batches_total: int
  batches_done: int
  batches_failed: int
  questions_total: int
  questions_scored: int
  score_distribution: dict[str, int]
  started_at: StrictStr
  finished_at: StrictStr | None = None
  duration_ms: int | None = None
  cancel_requested: bool
  source_id: StrictStr
  model_id: StrictStr
  error: StrictStr | None = None
  log: list[JobLogEntry] = Field(default_factory=list)
  model_config = _RESPONSE_CONFIG


class ReviewListResponse(BaseModel):
  reviews: list[ReviewSnapshotResponse]
  model_config = _RESPONSE_CONFIG


class ReviewStatsResponse(BaseModel):
  source_id: StrictStr
  total: int
  reviewed: int
  unreviewed: int
  score_distribution: dict[str, int]
  average_score: float
  model_config = _RESPONSE_CONFIG
