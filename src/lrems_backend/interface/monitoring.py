from typing import Annotated, ClassVar, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, RootModel

from lrems_backend.interface.base import BaseEntityGet, ListQuery, Pagination
from lrems_backend.permissions.predicate import RecordQuery

TaskProgress = Literal['Done', 'Pending', 'Ongoing Evaluation']


class EvaluatorAssignment(BaseModel):
    evaluator_id: str = Field(min_length=1)
    name: Optional[str] = None


class EvaluatorGet(BaseModel):
    evaluator_id: str
    name: Optional[str] = None
    has_tx_and_tm: Literal['Yes', 'No'] = 'No'
    individual_upload: TaskProgress = 'Pending'
    team_upload: TaskProgress = 'Pending'
    tx_and_tm_with_marginal_notes: TaskProgress = 'Pending'
    signed_summary_form: TaskProgress = 'Pending'
    clearance: TaskProgress = 'Pending'

    model_config = ConfigDict(from_attributes=True)


class MonitoringCreate(BaseModel):
    book_code: str = Field(min_length=1)
    learning_area: str = Field(min_length=1)
    event_name: Optional[str] = None
    event_date: Optional[str] = None
    evaluators: List[EvaluatorAssignment] = Field(default_factory=list)


class MonitoringUpdate(BaseModel):
    learning_area: Optional[str] = Field(None, min_length=1)
    event_name: Optional[str] = None
    event_date: Optional[str] = None
    evaluators: Optional[List[EvaluatorAssignment]] = None


class MonitoringGet(BaseEntityGet):
    id: int
    book_code: str
    learning_area: str
    grade_level: Optional[int] = None
    event_name: Optional[str] = None
    event_date: Optional[str] = None
    evaluators: List[EvaluatorGet] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class MonitoringListResponse(BaseModel):
    data: List[MonitoringGet]
    pagination: Pagination


class MonitoringQuery(ListQuery):
    limit: int = Field(50, ge=1, le=500)
    search: Optional[str] = None
    learning_area: Optional[List[str]] = None
    grade_level: Optional[List[int]] = None

    def to_record_query(self) -> RecordQuery:
        return RecordQuery(
            learning_areas=self.learning_area,
            grade_levels=self.grade_level,
            search=self.search,
        )


class _TaskStatusBase(BaseModel):
    column: ClassVar[str]

    def apply(self, evaluator) -> None:
        setattr(evaluator, self.column, self.status)


class TxAndTmStatus(_TaskStatusBase):
    task_field: Literal['hasTxAndTm']
    status: Literal['Yes', 'No']
    column: ClassVar[str] = 'has_tx_and_tm'


class IndividualUploadStatus(_TaskStatusBase):
    task_field: Literal['individualUpload']
    status: TaskProgress
    column: ClassVar[str] = 'individual_upload'


class TeamUploadStatus(_TaskStatusBase):
    task_field: Literal['teamUpload']
    status: TaskProgress
    column: ClassVar[str] = 'team_upload'


class MarginalNotesStatus(_TaskStatusBase):
    task_field: Literal['txAndTmWithMarginalNotes']
    status: TaskProgress
    column: ClassVar[str] = 'tx_and_tm_with_marginal_notes'


class SummaryFormStatus(_TaskStatusBase):
    task_field: Literal['signedSummaryForm']
    status: TaskProgress
    column: ClassVar[str] = 'signed_summary_form'


class ClearanceStatus(_TaskStatusBase):
    task_field: Literal['clearance']
    status: TaskProgress
    column: ClassVar[str] = 'clearance'


TaskStatusUpdate = Annotated[
    Union[
        TxAndTmStatus,
        IndividualUploadStatus,
        TeamUploadStatus,
        MarginalNotesStatus,
        SummaryFormStatus,
        ClearanceStatus,
    ],
    Field(discriminator='task_field'),
]


class TaskStatusChange(RootModel[TaskStatusUpdate]):
    """Request body wrapper for a single task status change"""
    pass
