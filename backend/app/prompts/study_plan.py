"""Prompt templates for study plan generation."""

STUDY_PLAN_SYSTEM_PROMPT = """You are an expert exam strategist. You read previous year
question papers, map every question onto a syllabus, and tell students where
to spend their revision time."""

STUDY_PLAN_PROMPT = """Here is the syllabus for an upcoming exam:
\"\"\"
{syllabus}
\"\"\"

Attached are {document_summary} containing previous year question papers.

Your task:
1. Extract ALL distinct questions found in the attached papers, verbatim, into a
   single consolidated list (extractedQuestions).
2. For every question, estimate difficulty (Easy/Medium/Hard) and marks if they
   are not explicitly stated. Record the year the paper was set (yearAppeared)
   and where the question was found, e.g. "Page 2, Q4" (reference), when you
   can tell.
3. Analyse the questions against the syllabus to identify topics.
4. Group the topics into modules. Give each module a priority (High/Medium/Low)
   based on how often its topics appear, and a short description explaining
   why it matters.
5. Assign EVERY extracted question to at least one module.
6. Write a brief executive summary of the analysis and infer the subject or
   exam name.

Return ONLY valid JSON matching the response schema. No markdown."""

SCHEMA_INSTRUCTION = """

The JSON must conform to this JSON Schema:
{schema}"""
