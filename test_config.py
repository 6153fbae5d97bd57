"""Tests for model lookup and AWS session arguments."""

from config import AWSConfig, get_max_output_tokens, get_model_spec, supports_both_sampling


def test_cross_region_id_resolves_to_base_model():
    assert get_model_spec("us.anthropic.claude-3-5-haiku-20241022-v1:0").name == "Claude 3.5 Haiku"
    assert get_model_spec("anthropic.claude-3-5-haiku-20241022-v1:0").max_output_tokens == 8192


def test_unknown_model_gets_conservative_defaults():
    spec = get_model_spec("someone.custom-model")
    assert spec.name == "someone.custom-model"
    assert get_max_output_tokens("someone.custom-model") == 4096
    assert not supports_both_sampling("someone.custom-model")


def test_profile_wins_over_keys():
    cfg = AWSConfig(region="eu-west-1", access_key_id="AK", secret_access_key="SK", profile_name="dev")
    assert cfg.session_kwargs() == {"region_name": "eu-west-1", "profile_name": "dev"}
    assert cfg.describe() == "AWS profile dev"


def test_explicit_keys_with_session_token():
    cfg = AWSConfig(region="us-east-1", access_key_id="AK", secret_access_key="SK",
                    session_token="TOK", profile_name="")
    assert cfg.session_kwargs("us-west-2") == {
        "region_name": "us-west-2",
        "aws_access_key_id": "AK",
        "aws_secret_access_key": "SK",
        "aws_session_token": "TOK",
    }
    assert cfg.describe() == "temporary AWS credentials"


def test_default_chain():
    cfg = AWSConfig(region="us-east-1", access_key_id="", secret_access_key="", session_token="", profile_name="")
    assert cfg.session_kwargs() == {"region_name": "us-east-1"}
    assert cfg.describe() == "default AWS credential chain"
