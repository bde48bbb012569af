"""Issue template lookup for ``init issue``."""

import logging

from .exceptions import GitHubClientError, TemplateNotFoundError, TemplateSelectionError
from .models import IssueTemplate
from .provider import TemplateClient

logger = logging.getLogger(__name__)


async def fetch_templates(client: TemplateClient, owner: str, repo: str) -> list[IssueTemplate]:
    """
    Fetch the repository's templates.

    A failed lookup is logged and treated as "no templates", so a new
    issue can still be started from the default boilerplate.
    """
    try:
        return await client.get_issue_templates(owner, repo)
    except GitHubClientError as e:
        logger.warning(f"Failed to fetch issue templates: {e.message}")
        return []


def select_template(
    templates: list[IssueTemplate],
    requested: str | None = None,
) -> IssueTemplate | None:
    """
    Pick the template for a new issue.

    - no templates: None
    - a requested name: that template
    - a single template: that one
    - several and no request: an error listing them

    Raises:
        TemplateNotFoundError: If the requested template does not exist
        TemplateSelectionError: If the choice is ambiguous
    """
    if not templates:
        return None

    if requested is not None:
        for template in templates:
            if template.name == requested:
                return template
        raise TemplateNotFoundError(requested, [t.name for t in templates])

    if len(templates) == 1:
        logger.info(f"Using template: {templates[0].name}")
        return templates[0]

    raise TemplateSelectionError([t.name for t in templates])
