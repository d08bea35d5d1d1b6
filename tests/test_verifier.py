import json

import pytest

from ecspresso.verifier import Verifier, VerifyOption, new_verifier
from ecspresso.verify import SkipVerify


class FakeSecretsManager:
    def __init__(self, secrets):
        self.secrets = secrets
        self.calls = []

    def get_secret_value(self, SecretId):
        self.calls.append(SecretId)
        if SecretId not in self.secrets:
            raise Exception("ResourceNotFoundException")
        return {"SecretString": self.secrets[SecretId]}


class FakeSSM:
    def __init__(self, names):
        self.names = names
        self.calls = []

    def get_parameters(self, Names, WithDecryption):
        self.calls.append((tuple(Names), WithDecryption))
        found = [{"Name": n} for n in Names if n in self.names]
        invalid = [n for n in Names if n not in self.names]
        return {"Parameters": found, "InvalidParameters": invalid}


class FakeS3:
    def __init__(self, objects):
        self.objects = objects
        self.calls = []

    def head_object(self, Bucket, Key):
        self.calls.append((Bucket, Key))
        if (Bucket, Key) not in self.objects:
            raise Exception("404 Not Found")
        return {}


class FakeSession:
    def __init__(self, region="ap-northeast-1", **clients):
        self.region_name = region
        self.clients = clients
        self.created = []

    def client(self, service_name, region_name=None):
        self.created.append((service_name, region_name))
        if service_name == "ecr":
            return ("ecr", region_name or self.region_name)
        return self.clients[service_name]


SECRET_ARN = "arn:aws:secretsmanager:ap-northeast-1:123456789012:secret:app-AbCdEf"


def make_verifier(opt=None, secrets=None, params=(), objects=()):
    session = FakeSession(
        secretsmanager=FakeSecretsManager(secrets or {}),
        ssm=FakeSSM(set(params)),
        s3=FakeS3(set(objects)),
    )
    return new_verifier(session, session, opt or VerifyOption()), session


def test_verifier_is_assumed():
    cfg1 = FakeSession()
    cfg2 = FakeSession()
    cases = [
        (cfg1, cfg2, True),
        (cfg1, cfg1, False),
        (cfg2, cfg2, False),
        (cfg2, cfg1, True),
    ]
    for exec_cfg, app_cfg, expected in cases:
        v = new_verifier(exec_cfg, app_cfg, VerifyOption())
        assert v.is_assumed() is expected


def test_verify_option_defaults():
    opt = VerifyOption()
    assert (opt.get_secrets, opt.put_logs, opt.cache) == (True, True, True)


def test_secret_skipped_without_get_secrets():
    v, _ = make_verifier(VerifyOption(get_secrets=False))
    with pytest.raises(SkipVerify, match="get a secret value for /app/db"):
        v.exists_secret_value("/app/db")


def test_ssm_parameter_by_name():
    v, session = make_verifier(params={"/app/db"})
    v.exists_secret_value("/app/db")
    assert session.clients["ssm"].calls == [(("/app/db",), True)]


def test_ssm_parameter_by_arn():
    v, session = make_verifier(params={"/app/db"})
    v.exists_secret_value("arn:aws:ssm:ap-northeast-1:123456789012:parameter/app/db")
    assert session.clients["ssm"].calls[0][0] == ("/app/db",)


def test_ssm_parameter_missing():
    v, _ = make_verifier(params=set())
    with pytest.raises(LookupError, match="ssm parameter /missing is not found"):
        v.exists_secret_value("/missing")


def test_secrets_manager_whole_secret():
    v, session = make_verifier(secrets={SECRET_ARN: "plain"})
    v.exists_secret_value(SECRET_ARN)
    assert session.clients["secretsmanager"].calls == [SECRET_ARN]


def test_secrets_manager_json_key_truncates_arn():
    doc = json.dumps({"username": "user"})
    v, session = make_verifier(secrets={SECRET_ARN: doc})
    v.exists_secret_value(SECRET_ARN + ":username::")
    assert session.clients["secretsmanager"].calls == [SECRET_ARN]


def test_secrets_manager_empty_key_is_ok():
    v, session = make_verifier(secrets={SECRET_ARN: "not json"})
    v.exists_secret_value(SECRET_ARN + "::AWSCURRENT:")
    assert session.clients["secretsmanager"].calls == [SECRET_ARN]


def test_secrets_manager_missing_key():
    v, _ = make_verifier(secrets={SECRET_ARN: json.dumps({"username": "user"})})
    with pytest.raises(LookupError, match="failed to find key host"):
        v.exists_secret_value(SECRET_ARN + ":host::")


def test_secrets_manager_secret_not_json():
    v, _ = make_verifier(secrets={SECRET_ARN: "plain"})
    with pytest.raises(ValueError, match="failed to parse secret string"):
        v.exists_secret_value(SECRET_ARN + ":host::")


def test_secrets_manager_invalid_arn():
    v, _ = make_verifier()
    with pytest.raises(ValueError, match="invalid arn format"):
        v.exists_secret_value("arn:aws:secretsmanager:ap-northeast-1")


def test_secrets_manager_missing_secret():
    v, _ = make_verifier(secrets={})
    with pytest.raises(RuntimeError, match="failed to get secret value"):
        v.exists_secret_value(SECRET_ARN)


def test_environment_file_exists():
    v, session = make_verifier(objects={("my-bucket", "path/to/app.env")})
    v.exists_environment_file({"type": "s3", "value": "arn:aws:s3:::my-bucket/path/to/app.env"})
    assert session.clients["s3"].calls == [("my-bucket", "path/to/app.env")]


def test_environment_file_missing():
    v, _ = make_verifier(objects=set())
    with pytest.raises(RuntimeError, match="failed to head s3 object"):
        v.exists_environment_file({"type": "s3", "value": "arn:aws:s3:::my-bucket/app.env"})


def test_environment_file_unsupported_type():
    v, _ = make_verifier()
    with pytest.raises(SkipVerify, match="unsupported environment file type: ftp"):
        v.exists_environment_file({"type": "ftp", "value": "x"})


@pytest.mark.parametrize(
    "value, message",
    [
        ("not-an-arn", "failed to parse s3 arn"),
        ("arn:aws:ssm:::my-bucket/app.env", "invalid s3 arn"),
        ("arn:aws:s3:::my-bucket", "invalid s3 arn"),
    ],
)
def test_environment_file_invalid_arn(value, message):
    v, _ = make_verifier()
    with pytest.raises(ValueError, match=message):
        v.exists_environment_file({"type": "s3", "value": value})


def test_ecr_client_cached_per_region():
    session = FakeSession(region="ap-northeast-1")
    v = Verifier(session, session, VerifyOption())
    first = v.ecr_client("us-east-1")
    second = v.ecr_client("us-east-1")
    home = v.ecr_client("ap-northeast-1")
    assert first == ("ecr", "us-east-1")
    assert first is second
    assert home == ("ecr", "ap-northeast-1")
    assert session.created.count(("ecr", "us-east-1")) == 1