"""
Configuration for the Bedrock task agent.

Every setting comes from the environment (a .env file is loaded first) and is
read once at import into the module-level `aws_config`, `model_config` and
`app_config` instances.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, NamedTuple
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class AWSConfig:
    """Region and credentials for the bedrock-runtime client"""
    region: str = os.getenv("AWS_REGION", "us-east-1")
    access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    session_token: str = os.getenv("AWS_SESSION_TOKEN", "")
    profile_name: str = os.getenv("AWS_PROFILE", "")

    def session_kwargs(self, region: str = "") -> Dict[str, Any]:
        """boto3.Session arguments: a named profile wins over explicit keys,
        and with neither boto3 falls back to its default credential chain."""
        kwargs: Dict[str, Any] = {"region_name": region or self.region}
        if self.profile_name:
            kwargs["profile_name"] = self.profile_name
        elif self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
            if self.session_token:
                kwargs["aws_session_token"] = self.session_token
        return kwargs

    def describe(self) -> str:
        if self.profile_name:
            return f"AWS profile {self.profile_name}"
        if self.access_key_id and self.secret_access_key:
            return "temporary AWS credentials" if self.session_token else "explicit AWS credentials"
        return "default AWS credential chain"


@dataclass
class ModelConfig:
    """Model and sampling settings applied to every request"""
    model_id: str = os.getenv("BEDROCK_MODEL_ID", "us.anthropic.claude-sonnet-4-20250514-v1:0")
    max_tokens: int = int(os.getenv("MAX_TOKENS", "4096"))
    temperature: float = float(os.getenv("TEMPERATURE", "0.25"))
    top_p: float = float(os.getenv("TOP_P", "0.95"))


@dataclass
class AppConfig:
    title: str = "Bedrock Task Agent"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "bedrock_task.log")
    working_directory: str = os.getenv("WORKING_DIRECTORY", ".")
    # tool rounds per task
    max_tool_iterations: int = int(os.getenv("MAX_TOOL_ITERATIONS", "100"))
    api_max_retries: int = int(os.getenv("API_MAX_RETRIES", "3"))
    api_retry_base_delay: float = float(os.getenv("API_RETRY_BASE_DELAY", "1.0"))
    api_retry_max_delay: float = float(os.getenv("API_RETRY_MAX_DELAY", "10.0"))
    # seconds; applies to one execute() call
    task_timeout: float = float(os.getenv("TASK_TIMEOUT", "600"))
    # milliseconds
    bash_default_timeout_ms: int = int(os.getenv("BASH_DEFAULT_TIMEOUT_MS", "120000"))
    bash_max_timeout_ms: int = int(os.getenv("BASH_MAX_TIMEOUT_MS", "600000"))
    progress_buffer_size: int = int(os.getenv("PROGRESS_BUFFER_SIZE", "256"))
    # used only when no approval callback is wired in
    auto_approve_edits: bool = _env_bool("AUTO_APPROVE_EDITS", "true")
    auto_approve_commands: bool = _env_bool("AUTO_APPROVE_COMMANDS", "false")
    sessions_dir: str = os.getenv("SESSIONS_DIR", os.path.join(os.path.expanduser("~"), ".bedrock-task", "sessions"))


# ============================================================
# Known Claude models on Bedrock
# ============================================================

class ModelSpec(NamedTuple):
    name: str
    max_output_tokens: int
    # some models reject requests that set temperature and top_p together
    supports_both_sampling: bool


MODEL_SPECS: Dict[str, ModelSpec] = {
    "anthropic.claude-sonnet-4-20250514-v1:0": ModelSpec("Claude Sonnet 4", 64000, False),
    "anthropic.claude-3-7-sonnet-20250219-v1:0": ModelSpec("Claude 3.7 Sonnet", 64000, True),
    "anthropic.claude-3-5-haiku-20241022-v1:0": ModelSpec("Claude 3.5 Haiku", 8192, True),
    "anthropic.claude-3-haiku-20240307-v1:0": ModelSpec("Claude 3 Haiku", 4096, True),
}

_UNKNOWN_MODEL = ModelSpec("", 4096, False)


def get_model_spec(model_id: str) -> ModelSpec:
    """Look up a model by base id or by cross-region profile id (`us.`, `eu.`, ...)."""
    spec = MODEL_SPECS.get(model_id)
    if spec is None and "." in model_id:
        spec = MODEL_SPECS.get(model_id.split(".", 1)[1])
    return spec or _UNKNOWN_MODEL._replace(name=model_id)


def get_max_output_tokens(model_id: str) -> int:
    return get_model_spec(model_id).max_output_tokens


def supports_both_sampling(model_id: str) -> bool:
    return get_model_spec(model_id).supports_both_sampling


aws_config = AWSConfig()
model_config = ModelConfig()
app_config = AppConfig()
