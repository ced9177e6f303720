import pytest

from s3lite.config import Credentials, S3Configuration
from s3lite.request_builder import RequestBuilder


def test_aws_preset():
    config = S3Configuration.aws('AKID', 'SECRET', 'eu-west-1')
    assert config.endpoint == 'https://s3.eu-west-1.amazonaws.com'
    assert config.use_path_style is False
    assert config.region == 'eu-west-1'
    assert config.host == 's3.eu-west-1.amazonaws.com'
    assert config.port is None


def test_backblaze_preset():
    config = S3Configuration.backblaze('AKID', 'SECRET', 'us-west-004')
    assert config.endpoint == 'https://s3.us-west-004.backblazeb2.com'
    assert config.use_path_style is True
    assert config.region == 'us-west-004'


def test_cloudflare_preset():
    config = S3Configuration.cloudflare('AKID', 'SECRET', 'abc123')
    assert config.endpoint == 'https://abc123.r2.cloudflarestorage.com'
    assert config.use_path_style is True
    assert config.region == 'auto'


def test_gcs_preset():
    config = S3Configuration.gcs('AKID', 'SECRET')
    assert config.endpoint == 'https://storage.googleapis.com'
    assert config.use_path_style is True
    assert config.region == 'auto'
    assert config.credentials == Credentials('AKID', 'SECRET', 'auto')


@pytest.mark.parametrize('config, url', [
    (S3Configuration.aws('AKID', 'SECRET', 'us-east-1'), 'https://photos.s3.us-east-1.amazonaws.com/a.jpg'),
    (S3Configuration.gcs('AKID', 'SECRET'), 'https://storage.googleapis.com/photos/a.jpg'),
])
def test_preset_addressing(config, url):
    assert RequestBuilder(config).build('GET', 'photos', 'a.jpg').url == url


def test_credentials_hide_secret():
    assert 'SECRET' not in repr(Credentials('AKID', 'SECRET', 'us-east-1'))
    assert Credentials('AKID', 'SECRET', 'us-east-1').service == 's3'


def test_custom_port():
    config = S3Configuration.create('AKID', 'SECRET', 'us-east-1', 'http://localhost:9000', use_path_style=True)
    assert (config.scheme, config.host, config.port) == ('http', 'localhost', 9000)
