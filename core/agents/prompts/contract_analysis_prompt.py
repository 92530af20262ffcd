"""Prompt Templates for the Contract Analysis Agent.

One instruction prompt per supported language. Both ask for the same JSON shape with
the six fixed clause keys; the Arabic prompt asks for the risk tier in Arabic.
"""

from app.models.contract import Language


CONTRACT_ANALYSIS_PROMPT_EN = """You are a legal assistant specializing in contract analysis. From the contract text below, extract the key clauses and summarize them in simple terms.

IMPORTANT: Respond with ONLY valid JSON. No additional text, no explanations.

Extract the following information:
- Deadlines: time-sensitive requirements or due dates
- Responsibilities: who is responsible for which tasks
- Payment terms: how and when payments are made
- Penalties: consequences for non-compliance or breach
- Confidentiality: confidentiality or non-disclosure requirements
- Termination conditions: how the contract can be ended

Assign a risk level of Low / Medium / High based on:
- Vague or unclear language
- Unclear penalties or consequences
- Missing important sections
- Unbalanced terms
- Unusual or risky provisions

Respond with ONLY this JSON format:
{{
  "extracted_clauses": {{
    "deadlines": "extracted deadline information",
    "responsibilities": "extracted responsibility information",
    "payment_terms": "extracted payment information",
    "penalties": "extracted penalty information",
    "confidentiality": "extracted confidentiality information",
    "termination_conditions": "extracted termination information"
  }},
  "summary": "brief summary of the contract",
  "risk_level": "Low"
}}

Contract text:
\"\"\"{contract_text}\"\"\"
"""


CONTRACT_ANALYSIS_PROMPT_AR = """أنت مساعد قانوني متخصص في تحليل العقود. من نص العقد أدناه، استخرج البنود الرئيسية ولخصها بعبارات بسيطة.

مهم: أجب بـ JSON صحيح فقط. بدون أي نص إضافي أو تفسيرات.

استخرج المعلومات التالية:
- المواعيد النهائية: المتطلبات المرتبطة بوقت أو تواريخ الاستحقاق
- المسؤوليات: من المسؤول عن كل مهمة
- شروط الدفع: كيف ومتى تتم المدفوعات
- العقوبات: عواقب عدم الالتزام أو الإخلال
- السرية: متطلبات السرية أو عدم الإفصاح
- شروط الإنهاء: كيف يمكن إنهاء العقد

حدد مستوى المخاطر: منخفض / متوسط / عالي بناءً على:
- لغة غامضة أو غير واضحة
- عقوبات أو عواقب غير واضحة
- أقسام مهمة مفقودة
- شروط غير متوازنة
- أحكام غير معتادة أو محفوفة بالمخاطر

أجب بـ JSON فقط بهذا التنسيق:
{{
  "extracted_clauses": {{
    "deadlines": "معلومات المواعيد النهائية",
    "responsibilities": "معلومات المسؤوليات",
    "payment_terms": "معلومات الدفع",
    "penalties": "معلومات العقوبات",
    "confidentiality": "معلومات السرية",
    "termination_conditions": "معلومات شروط الإنهاء"
  }},
  "summary": "ملخص مختصر للعقد",
  "risk_level": "منخفض"
}}

نص العقد:
\"\"\"{contract_text}\"\"\"
"""


CONTRACT_ANALYSIS_PROMPTS: dict[Language, str] = {
    Language.EN: CONTRACT_ANALYSIS_PROMPT_EN,
    Language.AR: CONTRACT_ANALYSIS_PROMPT_AR,
}


def format_contract_analysis_prompt(contract_text: str, language: Language | str = Language.EN) -> str:
    """Build the language-specific analysis prompt embedding the contract text."""
    return CONTRACT_ANALYSIS_PROMPTS[Language(language)].format(contract_text=contract_text)
