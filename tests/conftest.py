import os

# Settings are read at import time
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("PROVIDER_TIMEOUT", "5")

import httpx
import pytest

from libraryagent.applier import ActionApplier, build_default_registry
from libraryagent.fetcher import ArxivClient


class CountingIds:
    """Deterministic id factory: id-1, id-2, ..."""

    def __init__(self):
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"id-{self.count}"


@pytest.fixture
def registry():
    """Fixture to provide the frozen default registry"""
    return build_default_registry()


@pytest.fixture
def applier(registry):
    """Fixture to provide an applier with predictable ids"""
    return ActionApplier(registry, id_factory=CountingIds())


def make_arxiv_client(handler) -> ArxivClient:
    """ArxivClient whose HTTP traffic is answered by `handler(request) -> httpx.Response`."""
    return ArxivClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


EMPTY_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/">
  <title type="html">ArXiv Query: id_list=2310.11453</title>
  <opensearch:totalResults>0</opensearch:totalResults>
  <opensearch:startIndex>0</opensearch:startIndex>
  <opensearch:itemsPerPage>10</opensearch:itemsPerPage>
</feed>
"""

ATTENTION_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <title type="html">ArXiv Query: id_list=1706.03762</title>
  <opensearch:totalResults>1</opensearch:totalResults>
  <opensearch:startIndex>0</opensearch:startIndex>
  <opensearch:itemsPerPage>1</opensearch:itemsPerPage>
  <entry>
    <id>http://arxiv.org/abs/1706.03762v7</id>
    <updated>2023-08-02T00:41:18Z</updated>
    <published>2017-06-12T17:57:34Z</published>
    <title>Attention Is All
      You Need</title>
    <summary>  The dominant sequence transduction models are based on complex recurrent or
convolutional neural networks.
    </summary>
    <author><name>Ashish Vaswani</name></author>
    <author><name>Noam Shazeer</name></author>
    <arxiv:doi>10.48550/arXiv.1706.03762</arxiv:doi>
    <link title="doi" href="http://dx.doi.org/10.48550/arXiv.1706.03762" rel="related"/>
    <link href="http://arxiv.org/abs/1706.03762v7" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/1706.03762v7" rel="related" type="application/pdf"/>
    <arxiv:primary_category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
</feed>
"""

ERROR_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/">
  <opensearch:totalResults>1</opensearch:totalResults>
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_notanid</id>
    <title>Error</title>
    <summary>incorrect id format for notanid</summary>
  </entry>
</feed>
"""


@pytest.fixture
def arxiv_client():
    """Fixture to build an ArxivClient over a mock transport"""
    return make_arxiv_client


@pytest.fixture
def empty_feed():
    return EMPTY_FEED


@pytest.fixture
def attention_feed():
    return ATTENTION_FEED


@pytest.fixture
def error_feed():
    return ERROR_FEED
