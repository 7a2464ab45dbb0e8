class ConversionError(RuntimeError):
    """Base class for failures raised inside the conversion pipeline."""


class ToolNotFound(ConversionError):
    def __init__(self, tool: str, executable: str, env_var: str) -> None:
        self.tool = tool
        self.executable = executable
        self.env_var = env_var
        super().__init__(
            f'{tool.capitalize()} executable not found at "{executable}". '
            f"Install {tool} or set {env_var} to the executable location."
        )


class ToolExecutionFailure(ConversionError):
    def __init__(self, tool: str, returncode: int | None, stderr: str = "") -> None:
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(stderr or f"{tool} exited with code {returncode}")


class ToolOutputMissing(ConversionError):
    """The office converter exited cleanly but left no file with the expected extension."""


class SourceExtractionFailure(ConversionError):
    """Text could not be extracted from a PDF source."""


class TaskNotFound(LookupError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"task {task_id} not found")


class TaskNotReady(ConversionError):
    def __init__(self, task_id: str, status: str) -> None:
        self.task_id = task_id
        self.status = status
        super().__init__("Task is not completed yet or has no output.")


class InvalidTransition(ValueError):
    pass
