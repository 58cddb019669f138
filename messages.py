from typing import Any, Dict

from logger import log_error

MESSAGES: Dict[str, Dict[str, str]] = {
    "english": {
        "greeting": "Voice bookkeeper ready. Say purchase or loan to add a record.",
        "goodbye": "Goodbye.",
        "not_understood": "I did not understand that. Say purchase or loan to add a record.",
        "amount_not_understood": (
            "I couldn't understand the amount \"{utterance}\". "
            "Please say a clear number like \"1000\" or \"one thousand\"."
        ),
        "yes_no": "Please say Yes to save, or No to change.",
        "saving": "Saving the record...",
        "save_in_progress": "Still saving the last record. Please wait.",
        "save_failed": "Error: {reason}. Say Yes to try saving again.",
        "cancelled": "Cancelled.",
        "flow_finished": "That record is already saved. Say purchase or loan to add another.",
        "capture_no_speech": "No speech detected. Please speak clearly and try again.",
        "capture_audio": "Microphone access denied. Please allow microphone access and try again.",
        "capture_network": "Network error. Please check your internet connection and try again.",
        "capture_other": "Speech recognition error: {error}. Please try again.",
        "loan.start": "Let's add a loan record. Who did you give the loan to?",
        "loan.ask.amount_given": "How much did you lend {counterparty}?",
        "loan.ask.amount_paid": "How much has been paid back so far?",
        "loan.confirm": (
            "You lent ₹{amount_given} to {counterparty} and ₹{amount_paid} has been paid back. "
            "Should I save this?"
        ),
        "loan.change_amount": "Okay, let's change the amount. How much did you lend?",
        "loan.reset": "Form cleared. Let's start again. Who did you give the loan to?",
        "loan.missing": "Missing required information. Please provide the person's name and amount.",
        "loan.saved": "Loan record added successfully!",
        "purchase.start": "Let's add a purchase record. Who is the supplier?",
        "purchase.ask.amount_total": "How much did you purchase from {supplier}?",
        "purchase.ask.amount_paid": "How much have you paid so far?",
        "purchase.confirm": (
            "You purchased for ₹{amount_total} from {supplier} and have paid ₹{amount_paid}. "
            "Should I save this?"
        ),
        "purchase.change_amount": "Okay, let's change the amount. How much did you purchase?",
        "purchase.reset": "Form cleared. Let's start again. Who is the supplier?",
        "purchase.missing": "Missing required information. Please provide the supplier name and amount.",
        "purchase.saved": "Purchase record added successfully!",
    },
    "malayalam": {
        "greeting": "വോയ്സ് അസിസ്റ്റന്റ് തയ്യാർ. രേഖ ചേർക്കാൻ വാങ്ങൽ അല്ലെങ്കിൽ കടം എന്ന് പറയുക.",
        "goodbye": "വിട.",
        "not_understood": "മനസ്സിലായില്ല. രേഖ ചേർക്കാൻ വാങ്ങൽ അല്ലെങ്കിൽ കടം എന്ന് പറയുക.",
        "amount_not_understood": (
            "തുക \"{utterance}\" മനസ്സിലായില്ല. "
            "ദയവായി \"1000\" അല്ലെങ്കിൽ \"ആയിരം\" പോലെ വ്യക്തമായി പറയുക."
        ),
        "yes_no": "സേവ് ചെയ്യാൻ ഉണ്ട് എന്ന് പറയുക, അല്ലെങ്കിൽ മാറ്റാൻ വേണ്ട എന്ന് പറയുക.",
        "saving": "സേവ് ചെയ്യുന്നു...",
        "save_in_progress": "സേവ് ചെയ്യുന്നു. ദയവായി കാത്തിരിക്കുക.",
        "save_failed": "പിശക്: {reason}. വീണ്ടും സേവ് ചെയ്യാൻ ഉണ്ട് എന്ന് പറയുക.",
        "cancelled": "റദ്ദാക്കി.",
        "flow_finished": "ആ രേഖ ഇതിനകം സേവ് ചെയ്തു. മറ്റൊന്ന് ചേർക്കാൻ വാങ്ങൽ അല്ലെങ്കിൽ കടം എന്ന് പറയുക.",
        "capture_no_speech": "സംസാരം കണ്ടെത്തിയില്ല. ദയവായി വ്യക്തമായി സംസാരിച്ച് വീണ്ടും ശ്രമിക്കുക.",
        "capture_audio": "മൈക്രോഫോൺ ആക്സസ് നിഷേധിച്ചു. ദയവായി മൈക്രോഫോൺ ആക്സസ് അനുവദിച്ച് വീണ്ടും ശ്രമിക്കുക.",
        "capture_network": "നെറ്റ്വർക്ക് പിഴവ്. ദയവായി ഇന്റർനെറ്റ് കണക്ഷൻ പരിശോധിച്ച് വീണ്ടും ശ്രമിക്കുക.",
        "capture_other": "സംസാര തിരിച്ചറിയൽ പിഴവ്: {error}. ദയവായി വീണ്ടും ശ്രമിക്കുക.",
        "loan.start": "കടം രേഖ ചേർക്കാം. ആർക്കാണ് കടം കൊടുത്തത്?",
        "loan.ask.amount_given": "{counterparty} എത്ര രൂപ കടം കൊടുത്തു?",
        "loan.ask.amount_paid": "ഇതുവരെ എത്ര രൂപ തിരികെ നൽകി?",
        "loan.confirm": (
            "നിങ്ങൾ {counterparty} എന്നയാൾക്ക് ₹{amount_given} കടം കൊടുത്തു, "
            "ഇതുവരെ ₹{amount_paid} തിരികെ നൽകി. ഇത് സേവ് ചെയ്യട്ടേ?"
        ),
        "loan.change_amount": "ശരി, എത്ര രൂപ കടം കൊടുത്തു?",
        "loan.reset": "ഫോം ക്ലിയർ ചെയ്തു. ആർക്കാണ് കടം കൊടുത്തത്?",
        "loan.missing": "ആവശ്യമായ വിവരങ്ങൾ കാണുന്നില്ല. ദയവായി വ്യക്തിയുടെ പേരും തുകയും നൽകുക.",
        "loan.saved": "കടം രേഖ വിജയകരമായി ചേർത്തു!",
        "purchase.start": "വാങ്ങൽ രേഖ ചേർക്കാം. സപ്ലയർ ആരാണ്?",
        "purchase.ask.amount_total": "{supplier}യിൽ നിന്ന് എത്ര രൂപയ്ക്ക് വാങ്ങി?",
        "purchase.ask.amount_paid": "ഇതുവരെ എത്ര രൂപ നൽകി?",
        "purchase.confirm": (
            "നിങ്ങൾ {supplier}യിൽ നിന്ന് ₹{amount_total}ക്ക് വാങ്ങി, "
            "ഇതുവരെ ₹{amount_paid} നൽകി. ഇത് സേവ് ചെയ്യട്ടേ?"
        ),
        "purchase.change_amount": "ശരി, എത്ര രൂപയ്ക്ക് വാങ്ങി?",
        "purchase.reset": "ഫോം ക്ലിയർ ചെയ്തു. സപ്ലയർ ആരാണ്?",
        "purchase.missing": "ആവശ്യമായ വിവരങ്ങൾ കാണുന്നില്ല. ദയവായി സപ്ലയർ പേരും തുകയും നൽകുക.",
        "purchase.saved": "വാങ്ങൽ രേഖ വിജയകരമായി ചേർത്തു!",
    },
}


def get_message(language: str, key: str, **values: Any) -> str:
    catalogue = MESSAGES.get(language) or MESSAGES["english"]
    template = catalogue.get(key)
    if template is None:
        log_error("Missing %s message for key %s", language, key)
        template = MESSAGES["english"][key]
    return template.format(**values)
