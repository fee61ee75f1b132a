"""Tests for requirement derivation."""

import pytest

from empforge.analysis import IntentAnalyzer
from empforge.model import (
    AnalysisContext,
    Complexity,
    Entities,
    IntentAnalysis,
    MemoryStrategy,
    PrimaryIntent,
    Urgency,
)
from empforge.synthesis import RequirementDeriver

CS_REQUEST = "我需要一个客服助手，能够回答订单问题，要求友好耐心"
GENERIC_PROMPT = "您是一位专业的AI助手，能够高效完成各种任务。"


@pytest.fixture(scope="module")
def analyzer():
    return IntentAnalyzer()


@pytest.fixture(scope="module")
def deriver():
    return RequirementDeriver()


class TestCustomerServiceRequest:
    @pytest.fixture
    def requirements(self, analyzer, deriver):
        return deriver.derive(analyzer.analyze(CS_REQUEST))

    def test_basic(self, requirements):
        assert requirements.basic.name == "客服助手"
        assert requirements.basic.department == "通用部门"
        assert requirements.basic.priority == Urgency.MEDIUM
        assert requirements.basic.description == "担任客服助手角色，主要负责订单问题、回答订单问题，具有友好、耐心的特点"

    def test_persona(self, requirements):
        persona = requirements.persona
        assert persona.system_prompt == (
            GENERIC_PROMPT
            + "\n\n您的主要职责包括：\n• 订单问题\n• 回答订单问题"
            + "\n\n请注意以下约束：\n• 友好耐心"
        )
        assert persona.personality == "友好、耐心"
        assert persona.tone == "professional"
        assert persona.responsibilities == ("订单问题", "回答订单问题")

    def test_capabilities(self, requirements):
        capabilities = requirements.capabilities
        assert capabilities.allowed_tools == ("faq_search", "order_query")
        assert capabilities.permissions == ("read_basic_info",)
        assert capabilities.knowledge_domains == ("通用知识",)

    def test_advanced(self, requirements):
        advanced = requirements.advanced
        assert advanced.compression_needed is False
        assert advanced.memory_strategy == MemoryStrategy.SHORT
        assert advanced.slot_requirements == ("user_name", "current_time")
        assert advanced.learning_enabled is True


class TestDerivationIsPure:
    def test_same_analysis_same_requirements(self, analyzer, deriver):
        analysis = analyzer.analyze(CS_REQUEST)
        assert deriver.derive(analysis) == deriver.derive(analysis)

    def test_separate_analyses_of_same_text(self, analyzer, deriver):
        assert deriver.derive(analyzer.analyze(CS_REQUEST)) == deriver.derive(analyzer.analyze(CS_REQUEST))


class TestDepartmentTemplates:
    def test_customer_service_department(self, analyzer, deriver):
        requirements = deriver.derive(analyzer.analyze("为客户服务部创建一个助手，负责处理客户投诉"))
        assert requirements.basic.name == "AI-客服"
        assert requirements.basic.department == "客户服务部"
        assert requirements.persona.personality == "友好、耐心、专业、细心"
        assert requirements.persona.tone == "friendly"
        assert requirements.capabilities.allowed_tools == (
            "order_query", "customer_info", "faq_search", "crm_access",
        )
        assert requirements.capabilities.permissions == ("read_basic_info", "read_customer_info", "read_order_info")
        assert requirements.advanced.slot_requirements == (
            "user_name", "current_time", "department_info", "customer_context",
        )

    def test_complex_request(self, deriver):
        analysis = IntentAnalysis(
            primary_intent=PrimaryIntent.CREATE_EMPLOYEE,
            confidence=0.9,
            entities=Entities(
                department="技术支持部",
                tools=("data_analysis",),
                responsibilities=("创新方案设计",),
            ),
            context=AnalysisContext(urgency=Urgency.HIGH, complexity=Complexity.COMPLEX, domain="技术支持部"),
        )
        requirements = deriver.derive(analysis)
        assert requirements.basic.name == "AI-技术专家"
        assert requirements.basic.priority == Urgency.HIGH
        assert requirements.capabilities.permissions == (
            "read_basic_info", "read_advanced_info", "write_reports", "read_system_logs", "read_tech_docs",
        )
        assert requirements.capabilities.special_skills == ("数据分析", "创新思维")
        assert requirements.persona.expertise == ("数据分析", "创新思维")
        assert requirements.advanced.compression_needed is True
        assert requirements.advanced.memory_strategy == MemoryStrategy.LONG

    def test_uncatalogued_department_uses_generic_defaults(self, deriver):
        analysis = IntentAnalysis(
            primary_intent=PrimaryIntent.CREATE_EMPLOYEE,
            confidence=0.9,
            entities=Entities(department="财务部"),
        )
        requirements = deriver.derive(analysis)
        assert requirements.basic.name == "AI-助手"
        assert requirements.basic.department == "财务部"
        assert requirements.basic.description == "专为财务部设计"
        assert requirements.persona.system_prompt == GENERIC_PROMPT
        assert requirements.capabilities.allowed_tools == ("faq_search",)
        assert requirements.advanced.memory_strategy == MemoryStrategy.ADAPTIVE

    def test_role_names_the_employee(self, deriver):
        analysis = IntentAnalysis(
            primary_intent=PrimaryIntent.CREATE_EMPLOYEE,
            confidence=0.9,
            entities=Entities(department="销售部", role="销售顾问"),
        )
        assert deriver.derive(analysis).basic.name == "AI-销售顾问"

    def test_generic_description(self, deriver):
        analysis = IntentAnalysis(primary_intent=PrimaryIntent.CREATE_EMPLOYEE, confidence=0.9)
        assert deriver.derive(analysis).basic.description == "智能数字员工助手"


class TestToolInference:
    def test_every_matching_keyword_contributes(self, deriver):
        assert deriver.infer_tools(("分析客户数据", "维护产品文档")) == (
            "customer_info", "crm_access", "data_analysis", "report_generator", "product_catalog", "file_management",
        )
