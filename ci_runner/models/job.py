"""Job level models shared by the coordinator and Kubernetes layers."""

from pydantic import BaseModel, ConfigDict


class JobVariable(BaseModel):
    """A single job variable. Order and duplicates are meaningful."""

    model_config = ConfigDict(extra="ignore")

    key: str
    value: str = ""
    public: bool = False
