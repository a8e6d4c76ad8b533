from pydantic import BaseModel, ConfigDict, Field


class BrowsingReport(BaseModel):
    url: str
    duration: int
    project: str | None = None


class FocusReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project: str | None = None
    resource: str | None = None
    base_path: str | None = Field(default=None, alias="basePath")


class SaveReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project: str
    resource: str
    base_path: str | None = Field(default=None, alias="basePath")


class UrlRouteIn(BaseModel):
    project: str
    url: str


class IgnoredProjectIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(alias="projectName")


class ProjectDisplayIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(alias="projectName")
    custom_name: str | None = Field(default=None, alias="customName")
    logo_url: str | None = Field(default=None, alias="logoUrl")


class CommitIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project: str
    commit_hash: str = Field(alias="commitHash")
    commit_message: str = Field(alias="commitMessage")
    commit_time: str | None = Field(default=None, alias="commitTime")
    branch: str | None = None
    author_name: str | None = Field(default=None, alias="authorName")
    author_email: str | None = Field(default=None, alias="authorEmail")
    files_changed: int = Field(default=0, alias="filesChanged")
    lines_added: int = Field(default=0, alias="linesAdded")
    lines_deleted: int = Field(default=0, alias="linesDeleted")
