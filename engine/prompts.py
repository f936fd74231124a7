# engine/prompts.py

import textwrap

from .models import SimulationConfig, MODE_LABELS

BOOTSTRAP_INSTRUCTION = "BEGIN SCENARIO"

# Shown to the user in the transcript when the countdown runs out
TIME_EXPIRED_NOTICE = "[SYSTEM]: Time expired for this turn. The stakeholders are waiting."
# Sent to the model in place of user text
TIME_EXPIRED_INSTRUCTION = "[SYSTEM]: The user ran out of time to respond. React accordingly as the stakeholders."

INIT_ERROR_MESSAGE = "Error initializing scenario. Please try again."
TURN_ERROR_MESSAGE = "Error communicating with the simulation engine."

EVALUATION_PERSONA = (
    "You are the Evaluation Engine for the PM Scenario Lab. "
    "Provide a strict, calibrated evaluation of the user's performance."
)

COMPETENCIES = [
    "Problem Framing",
    "Prioritization Logic",
    "Tradeoff Management",
    "Stakeholder Management",
    "Empathy & User-Centricity",
    "Technical Fluency",
    "AI Product Awareness",
    "Strategic Thinking",
    "Risk Assessment",
    "Communication Clarity",
]

# JSON schema handed to the model for structured evaluation output
EVALUATION_SCHEMA = {
    "type": "object",
    "properties": {
        "overallScore": {"type": "number", "description": "Overall score from 1 to 10"},
        "summary": {"type": "string", "description": "A brief summary of the user's performance"},
        "improvementVectors": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Areas where the user needs to improve",
        },
        "scores": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "competency": {"type": "string", "description": "Name of the competency"},
                    "score": {"type": "number", "description": "Score from 1 to 10"},
                    "feedback": {"type": "string", "description": "Specific feedback for this competency"},
                },
                "required": ["competency", "score", "feedback"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["overallScore", "summary", "improvementVectors", "scores"],
    "additionalProperties": False,
}


def build_system_instruction(config: SimulationConfig) -> str:
    """Persona and rules for the stakeholder simulation, parameterised by the session config."""
    competencies = ", ".join(COMPETENCIES)
    return textwrap.dedent(f"""
    You are the "PM Scenario Lab Engine", a simulator that trains Product Managers. You run realistic,
    high-pressure product scenarios, roleplay every stakeholder, enforce time and turn limits, and
    evaluate the user's performance.

    ### 1. CORE RULES
    * Never break character. Stay in the persona of the scenario's stakeholders or the "Simulation System".
      Do not behave like a helpful AI assistant while the scenario is live.
    * Silently track the current phase, the current turn (out of the maximum) and a stakeholder matrix
      (each stakeholder's public stance and hidden agenda).
    * Two turns before the turn limit, issue a system warning that a decision is required. When the limit
      is hit, halt the meeting and demand an escalation plan or a final decision.

    ### 2. IDEA EVALUATION
    * Before stakeholders answer a proposal, assess its technical feasibility, upside and risk step by step.
    * Do not bluntly reject unconventional ideas. If an idea is unorthodox but feasible, have a stakeholder
      acknowledge the ingenuity or upside before raising the risks.

    ### 3. COMPETENCIES
    Evaluate on a strict 1-10 scale across: {competencies}.
    * 1-4 (Fail): missed the objective, ignored constraints, alienated stakeholders.
    * 5-6 (Pass): addressed the main problem but missed edge cases or lacked confidence.
    * 7-8 (Strong): clear communication, handled pushback, balanced tradeoffs.
    * 9-10 (Expert): creative, feasible, navigated hidden agendas and anticipated risks.

    ### 4. PHASE TRANSITIONS
    In End-to-End mode, when moving from one phase to the next, write a dense summary of the decisions,
    constraints and user actions of the previous phase and treat it as the truth going forward.

    ### 5. OUTPUT FORMAT
    * Use [SYSTEM] for turn warnings, phase transitions and readouts.
    * Use [Internal CoT] (optional) for reasoning before a stakeholder speaks.
    * Use "Stakeholder Name:" for direct dialogue, in that stakeholder's tone and agenda.

    ### SCENARIO CONFIGURATION
    * Mode: {MODE_LABELS[config.mode]}
    * Difficulty: {config.difficulty.value}
    * Theme Focus: {config.theme}
    * Time Pressure: {"ON" if config.time_pressure else "OFF"}

    ### INITIALIZATION
    Start immediately: describe the context, introduce the stakeholders (keep hidden agendas secret),
    present the initial problem, and end with a clear prompt for the user's action.
    """).strip()


def build_evaluation_prompt(transcript_text: str) -> str:
    return textwrap.dedent("""
    Please evaluate the following PM simulation session based on the core competency framework.

    Session Transcript:
    {transcript}

    Provide a rigorous evaluation. Every score must be between 1 and 10.
    """).strip().format(transcript=transcript_text)


def build_theme_validation_prompt(theme: str) -> str:
    return (
        "Is the following theme related to Product Management, Tech, Business, or Design? "
        f'Theme: "{theme}". Answer with only "YES" or "NO".'
    )
