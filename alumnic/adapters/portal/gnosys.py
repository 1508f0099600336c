"""
Gnosys portal adapter - Implements the DocumentVerifier protocol via httpx.

Gnosys is the university's platform for authenticating documents issued by
the academic system. Here it only authenticates the "Regularmente
Matriculado" (proof of enrollment) document.

The portal is a JSF application, so a check takes two requests sharing one
cookie jar: GET the form page to obtain the javax.faces.ViewState token,
then POST the document fields along with it. The answer is an HTML
fragment scraped for fixed element ids and classes.
"""

import logging
from datetime import datetime
from html.parser import HTMLParser

import httpx

from alumnic.config.settings import Settings
from alumnic.domain.exceptions import (
    AmbiguousVerdict,
    MissingViewState,
    PortalUnavailable,
    UnexpectedFieldCount,
)
from alumnic.domain.ports import (
    DocumentCredentials,
    DocumentUnrecognized,
    EnrolledStudent,
    OtherProgramStudent,
    VerificationOutcome,
)

logger = logging.getLogger(__name__)

VIEW_STATE_FIELD = "javax.faces.ViewState"
VALID_MARKER_ID = "msgDocumentoValido"
INVALID_MARKER_ID = "msgDocumentoInvalido"
DISPLAY_FIELD_CLASS = "gnosys-item-visualizacao"
# Name, registry id, program
EXPECTED_FIELD_COUNT = 3

VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

# Open element -> start tags that implicitly close it
_P_CLOSERS = frozenset(
    {
        "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt", "fieldset",
        "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "li", "main",
        "nav", "ol", "p", "pre", "section", "table", "ul",
    }
)
IMPLIED_END_TAGS = {
    "p": _P_CLOSERS,
    "li": frozenset({"li"}),
    "dt": frozenset({"dt", "dd"}),
    "dd": frozenset({"dt", "dd"}),
    "td": frozenset({"td", "th", "tr"}),
    "th": frozenset({"td", "th", "tr"}),
    "tr": frozenset({"tr"}),
    "option": frozenset({"option"}),
}
# An implied end never reaches past these
SCOPE_BOUNDARIES = frozenset({"button", "dl", "ol", "select", "table", "ul"})


class GnosysPageParser(HTMLParser):
    """
    Collects what the verification flow needs from a Gnosys page.

    - view_state: value of the javax.faces.ViewState input, if any
    - element_ids: every id attribute seen
    - display_fields: text of each element carrying DISPLAY_FIELD_CLASS

    Elements are tracked on a stack of open tags. Paragraphs, list items and
    table cells may omit their end tag, so a start tag can close elements
    still open, as it would in a browser.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.view_state: str | None = None
        self.element_ids: set[str] = set()
        self.display_fields: list[str] = []
        self._open: list[str] = []
        # Stack position of the display field being captured
        self._capture_at: int | None = None
        self._captured: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attributes = dict(attrs)

        element_id = attributes.get("id")
        if element_id:
            self.element_ids.add(element_id)

        if tag == "input" and attributes.get("name") == VIEW_STATE_FIELD and self.view_state is None:
            self.view_state = attributes.get("value")

        if tag in VOID_ELEMENTS:
            return

        index = self._implicitly_closed(tag)
        while index is not None:
            self._close_from(index)
            index = self._implicitly_closed(tag)

        if self._capture_at is None and DISPLAY_FIELD_CLASS in (attributes.get("class") or "").split():
            self._capture_at = len(self._open)
            self._captured = []
        self._open.append(tag)

    def handle_endtag(self, tag: str) -> None:
        if tag in VOID_ELEMENTS or tag not in self._open:
            return
        index = len(self._open) - 1 - self._open[::-1].index(tag)
        self._close_from(index)

    def handle_data(self, data: str) -> None:
        if self._capture_at is not None:
            self._captured.append(data)

    def close(self) -> None:
        super().close()
        self._close_from(0)

    def _implicitly_closed(self, tag: str) -> int | None:
        for index in range(len(self._open) - 1, -1, -1):
            open_tag = self._open[index]
            if tag in IMPLIED_END_TAGS.get(open_tag, ()):
                return index
            if open_tag in SCOPE_BOUNDARIES:
                return None
        return None

    def _close_from(self, index: int) -> None:
        del self._open[index:]
        if self._capture_at is not None and index <= self._capture_at:
            self.display_fields.append("".join(self._captured).strip())
            self._capture_at = None


def parse_page(html: str) -> GnosysPageParser:
    parser = GnosysPageParser()
    parser.feed(html)
    parser.close()
    return parser


def classify(html: str, target_program: str) -> VerificationOutcome:
    """
    Turn the portal's answer into a verification outcome.

    Raises:
        AmbiguousVerdict: Both or neither validity markers are present
        UnexpectedFieldCount: A valid answer without exactly three fields
    """
    page = parse_page(html)
    valid = VALID_MARKER_ID in page.element_ids
    invalid = INVALID_MARKER_ID in page.element_ids

    if valid == invalid:
        raise AmbiguousVerdict(f"valid={valid} invalid={invalid}")
    if invalid:
        return DocumentUnrecognized()

    if len(page.display_fields) != EXPECTED_FIELD_COUNT:
        raise UnexpectedFieldCount(len(page.display_fields))

    official_name, _registry_id, program = page.display_fields
    if program == target_program:
        return EnrolledStudent(official_name=official_name)
    return OtherProgramStudent(official_name=official_name, program=program)


class GnosysVerifier:
    """
    Implements DocumentVerifier protocol against the Gnosys portal.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Each verification uses a fresh AsyncClient, so cookies never leak
    between students.
    """

    def __init__(
        self,
        form_url: str,
        submit_url: str,
        target_program: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize verifier with portal endpoints.

        Args:
            form_url: Page holding the verification form
            submit_url: Endpoint the form posts to
            target_program: Program whose students are entitled to an account
            timeout: Connect/read timeout in seconds, per request
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self._form_url = form_url
        self._submit_url = submit_url
        self._target_program = target_program
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "GnosysVerifier":
        return cls(
            form_url=settings.portal_form_url,
            submit_url=settings.portal_submit_url,
            target_program=settings.target_program,
            timeout=settings.portal_timeout,
        )

    def _form_data(self, credentials: DocumentCredentials, view_state: str) -> dict[str, str]:
        return {
            "AJAXREQUEST": "_viewRoot",
            "gnosys-filtro_link_hidden_": "gnosys-filtro-campos",
            "alunoMatricula": credentials.identifier,
            "situacaoMatricula": "A",
            "dataAutenticacaoInputDate": credentials.issue_date,
            "dataAutenticacaoCurrentDate": datetime.now().strftime("%m/%Y"),
            "hora": credentials.issue_time,
            "assinatura": credentials.signature_code,
            "gnosys-filtro": "gnosys-filtro",
            "autoScroll": "",
            VIEW_STATE_FIELD: view_state,
            "btnValidarDocumento": "btnValidarDocumento",
            "": "",
        }

    async def verify(self, credentials: DocumentCredentials) -> VerificationOutcome:
        """
        Authenticate an enrollment document at the portal.

        Raises:
            PortalUnavailable: Network failure or non-success status
            PortalContractViolation: The pages no longer look as expected
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                form_page = await client.get(self._form_url)
                form_page.raise_for_status()

                view_state = parse_page(form_page.text).view_state
                if view_state is None:
                    raise MissingViewState(self._form_url)

                answer = await client.post(
                    self._submit_url, data=self._form_data(credentials, view_state)
                )
                answer.raise_for_status()
        except httpx.HTTPError as exc:
            raise PortalUnavailable(f"{type(exc).__name__}: {exc}") from exc

        outcome = classify(answer.text, self._target_program)
        logger.info(
            "Document of %s verified: %s", credentials.identifier, type(outcome).__name__
        )
        return outcome
