import textwrap
from pathlib import Path

import pytest

from tests.conftest import FakeElement, FakePage
from ui_resilience.core.descriptor_loader import (
    ElementRepository,
    Selector,
    SelectorStrategy,
    load_descriptor_file,
)
from ui_resilience.selectors.descriptor import ElementKind
from ui_resilience.selectors.locator import LocatorOptions


def write_descriptors(tmp_path: Path) -> Path:
    y = textwrap.dedent(
        """
        page: login
        url: ${BASE_URL}/login
        elements:
          - name: submit
            primary: "#login-submit"
            fallbacks:
              - { strategy: role, value: "button|Sign in" }
            descriptor:
              purpose: Login Button
              element_kind: button
              accessible_role: button
              text_patterns: ["Sign in", "Log in"]
          - name: email
            primary: { strategy: test_id, value: email-input }
            descriptor:
              element_kind: input
              label_patterns: Email
        ---
        page: jobs
        url: ${UNSET_VARIABLE_FOR_TEST}/jobs
        elements:
          - name: create
            primary: { strategy: text, value: Create job }
            descriptor:
              purpose: Create Job Button
              accessible_role: button
        """
    )
    p = tmp_path / "pages.yaml"
    p.write_text(y, encoding="utf-8")
    return p


def test_multi_doc_with_env_substitution(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BASE_URL", "https://app.test")
    pages = load_descriptor_file(write_descriptors(tmp_path))

    assert [p.page for p in pages] == ["login", "jobs"]
    login, jobs = pages
    assert login.url == "https://app.test/login"
    assert jobs.url == "${UNSET_VARIABLE_FOR_TEST}/jobs"

    submit = login.element("submit")
    assert submit.primary == Selector(value="#login-submit", strategy=SelectorStrategy.css)
    assert submit.fallbacks[0].strategy is SelectorStrategy.role
    assert submit.descriptor.element_kind is ElementKind.button

    # purpose defaults to the element name
    assert login.element("email").descriptor.purpose == "email"


def test_invalid_document_is_reported_with_location(tmp_path: Path):
    p = tmp_path / "bad.yaml"
    p.write_text(
        textwrap.dedent(
            """
            page: ok
            elements: []
            ---
            page: broken
            elements:
              - name: widget
                primary: "#w"
                descriptor:
                  purpose: Widget
                  element_kind: gizmo
            """
        ),
        encoding="utf-8",
    )
    with pytest.raises(ValueError) as ei:
        load_descriptor_file(p)
    msg = str(ei.value)
    assert "(document 2)" in msg
    assert "element_kind" in msg


def test_duplicate_element_names_rejected(tmp_path: Path):
    p = tmp_path / "dup.yaml"
    p.write_text(
        textwrap.dedent(
            """
            page: login
            elements:
              - { name: submit, primary: "#a", descriptor: { purpose: A } }
              - { name: submit, primary: "#b", descriptor: { purpose: B } }
            """
        ),
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="duplicate element name 'submit'"):
        load_descriptor_file(p)


def test_repository_builds_resilient_locators(tmp_path: Path, reporter):
    write_descriptors(tmp_path)
    (tmp_path / "broken.yml").write_text("page: [unclosed", encoding="utf-8")
    repo = ElementRepository.from_directory(tmp_path)

    assert repo.pages() == ["jobs", "login"]
    assert [el.name for _, el in repo] == ["create", "submit", "email"]

    page = FakePage([FakeElement("button", text="Sign in")])
    options = LocatorOptions(timeout_ms=0, probe_timeout_ms=0, enable_healing=False)
    submit = repo.locator(page, "login", "submit", options=options, reporter=reporter)

    submit.click()

    assert submit.healing_strategy() == "explicit fallback"
    assert page.elements[0].clicks == 1
    assert reporter.events()[0].purpose == "Login Button"

    with pytest.raises(KeyError, match="No page 'settings'"):
        repo.get("settings", "save")
    with pytest.raises(KeyError, match="No element 'logout'"):
        repo.get("login", "logout")
