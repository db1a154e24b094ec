"""
Application Layer - Agent Factory

Wires core domain objects with infrastructure adapters from AgentSettings:
- one LiteLLMProvider handle, shared by classifier, planner and loop
- the validated builtin tool registry (plus any extra ToolSpecs)
- file-backed plan and session stores, and the session retriever
- the LoopRunner and the PlanCoordinator on top of them
"""

from dataclasses import dataclass

import structlog

from taskpilot.application.settings import AgentSettings
from taskpilot.core.domain.agent_loop import LoopRunner
from taskpilot.core.domain.classifier import TaskClassifier
from taskpilot.core.domain.coordinator import PlanCoordinator
from taskpilot.core.domain.planner import Planner
from taskpilot.core.domain.policies import HeuristicContinuationPolicy
from taskpilot.core.interfaces.llm import LLMProviderProtocol
from taskpilot.core.interfaces.policies import FailurePolicyProtocol
from taskpilot.infrastructure.llm.litellm_provider import LiteLLMProvider, RetryPolicy
from taskpilot.infrastructure.persistence.file_plan_store import FilePlanStore
from taskpilot.infrastructure.persistence.file_session_store import FileSessionStore
from taskpilot.infrastructure.retrieval.retriever import SessionRetriever
from taskpilot.infrastructure.tools import ToolSpec, build_default_registry


@dataclass
class AgentComponents:
    """Everything the CLI needs, built from one settings object."""

    coordinator: PlanCoordinator
    loop_runner: LoopRunner
    session_store: FileSessionStore
    plan_store: FilePlanStore
    retriever: SessionRetriever


class AgentFactory:
    def __init__(self, settings: AgentSettings | None = None):
        self.settings = settings or AgentSettings()
        self.logger = structlog.get_logger().bind(component="agent_factory")

    def create_llm_provider(self) -> LiteLLMProvider:
        settings = self.settings
        return LiteLLMProvider(
            model=settings.model,
            provider=settings.provider,
            api_key=settings.api_key,
            api_base=settings.api_base,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            retry_policy=RetryPolicy(max_attempts=settings.llm_max_retries),
        )

    def create_stores(self) -> tuple[FileSessionStore, FilePlanStore]:
        return (
            FileSessionStore(self.settings.sessions_dir, max_lines=self.settings.context_window_size),
            FilePlanStore(self.settings.plans_dir),
        )

    def create_retriever(self, session_store: FileSessionStore) -> SessionRetriever:
        return SessionRetriever(
            session_store,
            top_k=self.settings.rag_top_k,
            strategy=self.settings.rag_strategy,
            threshold=self.settings.rag_threshold,
        )

    def create_components(
        self,
        llm_provider: LLMProviderProtocol | None = None,
        interactive_policy: FailurePolicyProtocol | None = None,
        extra_tools: list[ToolSpec] | None = None,
    ) -> AgentComponents:
        """
        Build the full object graph.

        Args:
            llm_provider: Override of the settings-built provider (tests, custom backends)
            interactive_policy: Failure policy used for interactive runs
            extra_tools: Additional tools registered after the builtins

        Raises:
            ToolRegistrationError: If the tool table is invalid
            ValueError: If the configured provider is unsupported
        """
        settings = self.settings
        llm = llm_provider or self.create_llm_provider()

        tools = build_default_registry(settings.command_timeout)
        for spec in extra_tools or []:
            tools.register(spec)
        if extra_tools:
            tools.validate()

        session_store, plan_store = self.create_stores()
        retriever = self.create_retriever(session_store)

        loop_runner = LoopRunner(
            llm_provider=llm,
            tools=tools,
            session_store=session_store,
            retriever=retriever,
            continuation_policy=HeuristicContinuationPolicy(
                tools, iteration_cap=settings.observe_iteration_cap
            ),
            max_iterations=settings.max_iterations,
        )
        coordinator = PlanCoordinator(
            classifier=TaskClassifier(llm),
            planner=Planner(llm, plan_store, tools.names(), max_attempts=settings.step_max_attempts),
            loop_runner=loop_runner,
            plan_store=plan_store,
            session_store=session_store,
            interactive_policy=interactive_policy,
            step_max_iterations=settings.step_max_iterations,
        )

        self.logger.info(
            "components_created",
            provider=settings.provider,
            model=settings.model,
            tools=tools.names(),
            workspace_dir=settings.workspace_dir,
        )
        return AgentComponents(
            coordinator=coordinator,
            loop_runner=loop_runner,
            session_store=session_store,
            plan_store=plan_store,
            retriever=retriever,
        )
