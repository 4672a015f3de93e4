import json
import logging
from typing import Any, Dict

from cyberstack.core.errors import ConfigurationError
from cyberstack.core.services.github_client import GitHubClient

logger = logging.getLogger(__name__)

PROFILE_PLACEHOLDER = '{{PROFILE_CONTEXT}}'
GITHUB_PLACEHOLDER = '{{GITHUB_CONTEXT}}'


class AgentContextBuilder:
    """
    Assembles the chat system instruction: the persona template with the
    profile JSON and the live repository list injected.
    """

    def __init__(self, github: GitHubClient, profile_path: str, template_path: str):
        self.github = github
        self.profile_path = profile_path
        self.template_path = template_path

    def _load_profile(self) -> Dict[str, Any]:
        with open(self.profile_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _load_template(self) -> str:
        with open(self.template_path, 'r', encoding='utf-8') as f:
            return f.read()

    def build(self) -> Dict[str, Any]:
        """
        Returns {'systemInstruction': str, 'context': {'github': [...], 'profile': {...}}}.
        Missing profile/template files propagate (OSError, ValueError); a
        missing GitHub owner only empties the repository context.
        """
        try:
            github_data = self.github.get_public_repositories()
        except ConfigurationError as e:
            logger.warning(f"[Agent Context] {e} Continuing without repository data.")
            github_data = []

        profile_data = self._load_profile()
        template = self._load_template()

        system_instruction = (
            template
            .replace(PROFILE_PLACEHOLDER, json.dumps(profile_data, indent=2, ensure_ascii=False))
            .replace(GITHUB_PLACEHOLDER, json.dumps(github_data, indent=2, ensure_ascii=False))
        )

        return {
            'systemInstruction': system_instruction,
            'context': {
                'github': github_data,
                'profile': profile_data,
            },
        }

    def system_instruction(self) -> str:
        return self.build()['systemInstruction']
