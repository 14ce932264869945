"""
Message texts for the WhatsApp channel.

The booking conversation speaks English or Gujarati; notices sent on behalf
of the front desk are English only.
"""
from __future__ import annotations

import datetime
from typing import Dict

from django.conf import settings

from clinic.services.timeslots import format_time_display

ENGLISH = 'english'
GUJARATI = 'gujarati'
LANGUAGES = (ENGLISH, GUJARATI)

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    'language_selection': {
        ENGLISH: "🌐 *Select Language*\n\nPlease choose your preferred language:",
        GUJARATI: "🌐 *ભાષા પસંદ કરો*\n\nકૃપા કરીને તમારી પ્રિય ભાષા પસંદ કરો:",
    },
    'date_intro': {
        ENGLISH: "📅 Let's pick your appointment date. Available dates will be shown next.",
        GUJARATI: "📅 ચાલો તમારી મુલાકાત માટે તારીખ પસંદ કરીએ. ઉપલબ્ધ તારીખો નીચે બતાવવામાં આવશે.",
    },
    'date_selection': {
        ENGLISH: "📅 *Select Appointment Date*\n\nChoose your preferred date:",
        GUJARATI: "📅 *અપોઇન્ટમેન્ટ તારીખ પસંદ કરો*\n\nતમારો પસંદીદા તારીખ પસંદ કરો:",
    },
    'date_section': {ENGLISH: "Available Dates", GUJARATI: "ઉપલબ્ધ તારીખો"},
    'date_button': {ENGLISH: "📅 Pick a Date", GUJARATI: "📅 તારીખ પસંદ કરો"},
    'date_retry_body': {ENGLISH: "Select Date:", GUJARATI: "તારીખ પસંદ કરો:"},
    'date_list_failed': {
        ENGLISH: "❌ Sorry, we couldn't display the date selection. Please try again later or contact reception.",
        GUJARATI: "❌ ક્ષમા કરો, અમે તારીખ પસંદ કરવા માટે સૂચિ બતાવી શક્યા નથી. કૃપા કરીને પાછળથી પ્રયાસ કરો અથવા રિસેપ્શનનો સંપર્ક કરો.",
    },
    'no_dates': {
        ENGLISH: "❌ *No Available Dates*\n\nAll dates are currently blocked or unavailable.\n\n"
                 "Please contact reception at {reception} for assistance.",
        GUJARATI: "❌ *કોઈ તારીખ ઉપલબ્ધ નથી*\n\nબધી તારીખો હાલમાં અવરોધિત અથવા ઉપલબ્ધ નથી.\n\n"
                  "કૃપા કરીને સહાયતા માટે રિસેપ્શનને {reception} પર કૉલ કરો.",
    },
    'past_date': {
        ENGLISH: "❌ Please select a date that is today or in the future.",
        GUJARATI: "❌ કૃપા કરીને આજની અથવા ભવિષ્યની તારીખ પસંદ કરો.",
    },
    'date_not_available': {
        ENGLISH: "❌ *Date Not Available*\n\n{reason}\n\nPlease select another date.",
        GUJARATI: "❌ *તારીખ ઉપલબ્ધ નથી*\n\n{reason}\n\nકૃપા કરીને બીજી તારીખ પસંદ કરો.",
    },
    'already_booked': {
        ENGLISH: "❌ *Appointment Already Booked*\n\nYou already have an appointment booked for {date}{at}.\n\n"
                 "Please select a different date.",
        GUJARATI: "❌ *અપોઇન્ટમેન્ટ પહેલેથી બુક થયેલ છે*\n\nતમારે {date}{at} માટે પહેલેથી અપોઇન્ટમેન્ટ બુક કરેલ છે.\n\n"
                  "કૃપા કરીને બીજી તારીખ પસંદ કરો.",
    },
    'time_periods': {
        ENGLISH: "🕐 *Select Appointment Time*\n\nChoose from quick options below:\n"
                 "• Morning - 9:00 AM to 1:00 PM\n• Afternoon - 2:00 PM to 5:00 PM",
        GUJARATI: "🕐 *સમય પસંદ કરો*\n\nઝડપી પસંદગી માટે નીચેના બટનમાંથી પસંદ કરો:\n"
                  "• સવાર (Morning) - 9:00 થી 1:00\n• બપોર (Afternoon) - 2:00 થી 5:00",
    },
    'morning_button': {ENGLISH: "🌅 Morning 9-1", GUJARATI: "🌅 સવાર 9-1"},
    'afternoon_button': {ENGLISH: "☀️ Afternoon 2-5", GUJARATI: "☀️ બપોર 2-5"},
    'morning_label': {ENGLISH: "Morning 9:00 - 1:00", GUJARATI: "સવાર 9:00 - 1:00"},
    'afternoon_label': {ENGLISH: "Afternoon 2:00 - 5:00", GUJARATI: "બપોર 2:00 - 5:00"},
    'time_retry_body': {ENGLISH: "Select Time:", GUJARATI: "સમય પસંદ કરો:"},
    'time_selection': {
        ENGLISH: "🕐 *Select Time*\n\nChoose your preferred time slot:",
        GUJARATI: "🕐 *સમય પસંદ કરો*\n\nતમારો પસંદીદા સમય પસંદ કરો:",
    },
    'time_period_selection': {
        ENGLISH: "🕐 *Select Time*\n\nChoose your preferred slot for {period}.",
        GUJARATI: "🕐 *સમય પસંદ કરો*\n\n{period} માટે ઉપલબ્ધ સમય સ્લોટમાંથી પસંદ કરો.",
    },
    'time_section': {ENGLISH: "Available Times", GUJARATI: "સમય પસંદ કરો"},
    'time_button': {ENGLISH: "Select Time", GUJARATI: "સમય પસંદ કરો"},
    'slot_available': {ENGLISH: "Available", GUJARATI: "ઉપલબ્ધ"},
    'time_list_failed': {
        ENGLISH: "❌ Sorry, we couldn't display the time slot selection. Please try again later or contact reception.",
        GUJARATI: "❌ ક્ષમા કરો, અમે સમય સ્લોટ પસંદ કરવા માટે સૂચિ બતાવી શક્યા નથી. કૃપા કરીને પાછળથી પ્રયાસ કરો અથવા રિસેપ્શનનો સંપર્ક કરો.",
    },
    'time_slots_heading': {ENGLISH: "🕐 *Time Slots ({title})*\n", GUJARATI: "🕐 *સમય સ્લોટ્સ ({title})*\n"},
    'time_slots_reply': {
        ENGLISH: "\nPlease reply with your preferred time (e.g., 10:30).",
        GUJARATI: "\nકૃપા કરીને તમારા પસંદીના સમય (ઉદાહરણ: 10:30) લખી જવાબ આપો.",
    },
    'no_slots_for_date': {
        ENGLISH: "❌ No time slots available for this date. Please select another date.",
        GUJARATI: "❌ આ તારીખ માટે કોઈ સમય સ્લોટ ઉપલબ્ધ નથી. કૃપા કરીને બીજી તારીખ પસંદ કરો.",
    },
    'period_full': {
        ENGLISH: "❌ All slots for this time period are booked. Please select another time.",
        GUJARATI: "❌ આ સમય અવધિ માટે બધા સ્લોટ બુક થયેલા છે. કૃપા કરીને બીજો સમય પસંદ કરો.",
    },
    'session_not_found': {
        ENGLISH: "❌ Session not found. Please try again.",
        GUJARATI: "❌ સત્ર મળ્યું નથી. કૃપા કરીને ફરીથી પ્રયાસ કરો.",
    },
    'invalid_time': {
        ENGLISH: "❌ Please choose a valid time slot (e.g., 10:30).",
        GUJARATI: "❌ કૃપા કરીને માન્ય સમય પસંદ કરો (ઉદાહરણ: 10:30).",
    },
    'time_too_soon': {
        ENGLISH: "❌ That time has already passed or is too soon. Please pick a future slot (at least 15 minutes from now).",
        GUJARATI: "❌ આ સમય પસાર થઈ ગયો છે અથવા ખૂબ નજીક છે. કૃપા કરીને ભવિષ્યનો સમય પસંદ કરો (ઓછામાં ઓછું 15 મિનિટ અંતર).",
    },
    'missing_date_time': {
        ENGLISH: "❌ Missing date or time. Please select the date again.",
        GUJARATI: "❌ તારીખ અથવા સમય મળ્યો નથી. કૃપા કરીને ફરીથી તારીખ પસંદ કરો.",
    },
    'missing_date_time_restart': {
        ENGLISH: "❌ Missing date or time. Please start over.",
        GUJARATI: "❌ તારીખ અથવા સમય મળ્યો નથી. કૃપા કરીને ફરીથી શરૂઆત કરો.",
    },
    'confirm_details': {
        ENGLISH: "📋 *Appointment Details*\n\n📅 Date: {date}\n🕒 Time: {time}\n\n"
                 "Please confirm. Doctor will be assigned by reception.",
        GUJARATI: "📋 *અપોઇન્ટમેન્ટની વિગતો*\n\n📅 તારીખ: {date}\n🕒 સમય: {time}\n\n"
                  "કૃપા કરીને ખાતરી કરો. ડૉક્ટર રિસેપ્શન દ્વારા સોંપવામાં આવશે.",
    },
    'confirm_button': {ENGLISH: "✅ Confirm", GUJARATI: "✅ ખાતરી કરો"},
    'cancel_button': {ENGLISH: "❌ Cancel", GUJARATI: "❌ રદ કરો"},
    'confirm_reply_hint': {
        ENGLISH: '\n\nPlease reply with "confirm" or "cancel".',
        GUJARATI: '\n\nકૃપા કરીને "confirm" અથવા "cancel" લખી જવાબ આપો.',
    },
    'booking_cancelled_button': {
        ENGLISH: "❌ Booking cancelled. You can start again anytime by typing 'Book Appointment'.",
        GUJARATI: "❌ બુકિંગ રદ કરાયું. તમે જ્યારે ઇચ્છો ત્યારે ફરીથી 'Book Appointment' લખીને શરૂ કરી શકો છો.",
    },
    'patient_not_found': {
        ENGLISH: "❌ Patient record not found.\n\n📝 Please register first:\n{base_url}",
        GUJARATI: "❌ દર્દી રેકોર્ડ મળ્યો નથી.\n\n📝 કૃપા કરીને પહેલા નોંધણી કરો:\n{base_url}",
    },
    'slot_just_booked': {
        ENGLISH: "❌ That slot was just booked. Please choose another time.",
        GUJARATI: "❌ આ સમય સ્લોટ હમણાં જ બુક થયો છે. કૃપા કરીને બીજો સમય પસંદ કરો.",
    },
    'booking_error': {
        ENGLISH: "❌ We hit an error while booking. Please try again shortly.",
        GUJARATI: "❌ બુકિંગ દરમિયાન ભૂલ આવી. કૃપા કરીને થોડા સમય પછી ફરી પ્રયાસ કરો.",
    },
}

LANGUAGE_FALLBACK = "🌐 *Select Language:*\n\nPlease reply with:\n• \"english\" for English\n• \"gujarati\" for ગુજરાતી"
BOOKING_CANCELLED = (
    "❌ Booking cancelled.\n\nYou can start a new booking anytime by typing 'Book' or clicking the "
    "'Book Appointment' button."
)
TEXT_CONFIRMATION_CANCELLED = "Booking cancelled. Type 'Book' to start again."
SESSION_EXPIRED = "❌ Session expired. Please start booking again."
ALREADY_CANCELLED = "✅ Already cancelled. You can start a new booking anytime."
THANKS_REPLY = "You're welcome! 😊\n\nFeel free to contact our help center if you found any issue.\n\nWe're here to help! 🏥"
GREETING = "Hello! 👋\n\nHow can I help you today?"
UNSUPPORTED_TYPE = "Thanks for reaching out. Please send a text message to start your appointment booking."
FLOW_MISSING_DATA = "❌ Missing appointment information. Please try booking again by clicking 'Book Appointment'."
FLOW_DOCTOR_NOT_FOUND = "❌ Doctor not found. Please try booking again."
FLOW_SLOT_RACE = "❌ That slot was just booked by another patient. Please try booking again."


def t(key: str, language: str = ENGLISH, **params) -> str:
    entry = TRANSLATIONS[key]
    text = entry.get(language) or entry[ENGLISH]
    return text.format(**params) if params else text


def capitalize_name(value: str) -> str:
    return ' '.join(part[:1].upper() + part[1:].lower() for part in (value or '').split(' ') if part)


def patient_display_name(appointment) -> str:
    return capitalize_name(appointment.patient_name) or 'Patient'



def long_date(day: datetime.date) -> str:
    """"Monday, 6 October 2025"."""
    return f"{day.strftime('%A')}, {day.day} {day.strftime('%B %Y')}"


def short_date(day: datetime.date) -> str:
    return f"{day.day} {day.strftime('%b')}"


def reception_phone() -> str:
    return settings.RECEPTION_PHONE


def greeting_fallback() -> str:
    return (
        f"{GREETING}\n\n• Type 'Book' to book an appointment\n• Type 'Help' for assistance\n\n"
        f"Or contact our reception at {reception_phone()}"
    )


def welcome() -> str:
    return (
        f"Hi! 👋 Welcome to {settings.HOSPITAL_DISPLAY_NAME}.\n\n"
        "Would you like to book an appointment? Click the button below to get started."
    )


def welcome_fallback() -> str:
    return (
        f"Hi! 👋 Welcome to {settings.HOSPITAL_DISPLAY_NAME}.\n\n"
        f"To book an appointment, please contact our reception at {reception_phone()}."
    )


def help_center() -> str:
    return (
        "🆘 *Help Center*\n\nWe're here to help you!\n\n"
        f"📞 *Contact Us:*\nPhone: {reception_phone()}\n\n"
        f"🌐 *Visit Our Website:*\n{settings.PUBLIC_BASE_URL}\n\n"
        "⏰ *Support Hours:*\nMonday - Saturday: 9:00 AM - 6:00 PM\nSunday: 10:00 AM - 2:00 PM\n\n"
        "For urgent medical assistance, please visit our emergency department or call emergency services."
    )


def registration_required() -> str:
    return (
        "❌ We couldn't find your patient profile.\n\n"
        f"📝 *Please register first to book appointments:*\n\n{settings.PUBLIC_BASE_URL}\n\n"
        f"Or contact reception:\nPhone: {reception_phone()}\n\n"
        "After registration, you can book appointments via WhatsApp! 🏥"
    )


def flow_patient_not_found() -> str:
    return (
        f"❌ Patient record not found.\n\n📝 *Please register first:*\n\n{settings.PUBLIC_BASE_URL}\n\n"
        "Or contact reception for assistance."
    )


def flow_already_booked(day: datetime.date, time: str) -> str:
    at = f" at {time}" if time else ""
    return (
        f"❌ *Appointment Already Booked*\n\nYour appointment for {day.isoformat()}{at} is already booked.\n\n"
        "Please select a different date to book another appointment."
    )


def flow_date_unavailable(reason: str) -> str:
    return (
        f"❌ *Date Not Available*\n\n{reason}\n\n"
        "Please try booking again by clicking 'Book Appointment' and selecting a different date."
    )


def flow_slot_taken(time: str, day: datetime.date) -> str:
    return (
        f"❌ *Time Slot Already Booked*\n\nThe time slot {time} on {day.isoformat()} is already booked.\n\n"
        "Please try booking again by clicking 'Book Appointment' and selecting a different time."
    )


def flow_booking_error() -> str:
    return f"❌ Error creating appointment. Please contact reception at {reception_phone()}"


def request_received(appointment) -> str:
    return (
        "🎉 *Appointment Request Received!*\n\n"
        f"Hi {patient_display_name(appointment)},\n\n"
        "Your appointment request has been received:\n"
        f"• 📅 Date: {long_date(appointment.appointment_date)}\n"
        f"• 🕒 Time: {format_time_display(appointment.appointment_time)}\n"
        f"• 📋 Appointment ID: {appointment.pk}\n"
        "• 👨‍⚕️ Doctor: Will be assigned by reception\n\n"
        "✅ Our receptionist will confirm your appointment and assign a doctor shortly. "
        "You'll receive a confirmation message once processed.\n\n"
        f"If you need to reschedule, just reply here or call us at {reception_phone()}."
    )


def booking_confirmed(appointment) -> str:
    due = (
        f" (₹{appointment.remaining_amount} due at hospital)" if appointment.remaining_amount > 0 else " (paid)"
    )
    return (
        "🎉 *Appointment Confirmed!*\n\n"
        f"Hi {patient_display_name(appointment)},\n\n"
        "Your appointment has been booked successfully:\n"
        f"• 👨‍⚕️ Doctor: {appointment.doctor_name}\n"
        f"• 📅 Date: {long_date(appointment.appointment_date)}\n"
        f"• 🕒 Time: {format_time_display(appointment.appointment_time)}\n"
        f"• 📋 Appointment ID: {appointment.pk}\n"
        f"• 💳 Payment: {(appointment.payment_method or 'cash').upper()} - ₹{appointment.payment_amount}{due}\n\n"
        "✅ Your appointment is now visible in our system. Admin and receptionist can see it.\n\n"
        "📄 Your appointment confirmation is available in your patient dashboard.\n\n"
        f"If you need to reschedule, just reply here or call us at {reception_phone()}."
    )


def reception_confirmation(appointment) -> str:
    doctor = appointment.doctor_name
    if appointment.doctor_specialization:
        doctor = f"{doctor} ({appointment.doctor_specialization})"
    reason = f"• 📝 Reason: {appointment.chief_complaint}\n" if appointment.chief_complaint else ""
    remaining = appointment.remaining_amount
    amount = f"₹{appointment.payment_amount}" + (f" (₹{remaining} due)" if remaining > 0 else " (paid)")
    status = "✅ Paid" if appointment.payment_status == 'paid' else "⏳ Pending"
    return (
        "🎉 *Appointment Confirmed!*\n\n"
        f"Hi {patient_display_name(appointment)},\n\n"
        "Your appointment has been confirmed and booked successfully by our receptionist.\n\n"
        "📋 *Appointment Details:*\n"
        f"• 👨‍⚕️ Doctor: {doctor}\n"
        f"• 📅 Date: {long_date(appointment.appointment_date)}\n"
        f"• 🕒 Time: {format_time_display(appointment.appointment_time)}\n"
        f"• 📋 Appointment ID: {appointment.pk}\n"
        f"{reason}\n"
        "💳 *Payment Information:*\n"
        f"• Method: {(appointment.payment_method or 'cash').upper()}\n"
        f"• Amount: {amount}\n"
        f"• Status: {status}\n\n"
        "✅ Your appointment is confirmed and visible in our system.\n\n"
        f"If you need to reschedule or have any questions, reply here or call us at {reception_phone()}.\n\n"
        "See you soon! 🏥"
    )


def not_attended_message(appointment) -> str:
    return (
        "⚠️ *Appointment Missed*\n\n"
        f"Hello {patient_display_name(appointment)},\n\n"
        "We noticed that you missed your appointment today.\n\n"
        "📋 *Appointment Details:*\n"
        f"• 👨‍⚕️ Doctor: {appointment.doctor_name or 'Doctor'}\n"
        f"• 📅 Date: {long_date(appointment.appointment_date)}\n"
        f"• 🕒 Time: {format_time_display(appointment.appointment_time) if appointment.appointment_time else '-'}\n\n"
        "This appointment has been cancelled by our receptionist due to non-attendance.\n\n"
        "🔄 *Would you like to reschedule?*\n\n"
        "Please reply to this message or call us to book a new appointment. "
        "We're here to help you reschedule at your convenience.\n\n"
        f"Thank you for choosing {settings.HOSPITAL_DISPLAY_NAME}! 🏥"
    )


def reminder_message(appointment) -> str:
    return (
        "📅 *Appointment Reminder*\n\n"
        f"Hello {patient_display_name(appointment)},\n\n"
        "This is a friendly reminder about your upcoming appointment:\n\n"
        "📋 *Appointment Details:*\n"
        f"• 👨‍⚕️ Doctor: {appointment.doctor_name or 'Doctor'}\n"
        f"• 📅 Date: {long_date(appointment.appointment_date)}\n"
        f"• 🕒 Time: {format_time_display(appointment.appointment_time)}\n\n"
        "⏰ Your appointment is scheduled for tomorrow (24 hours from now).\n\n"
        "Please make sure to:\n"
        "✅ Arrive 10-15 minutes early\n"
        "✅ Bring any previous medical reports or prescriptions\n"
        "✅ Carry a valid ID proof\n\n"
        "If you need to reschedule or cancel, please reply to this message or call us as soon as possible.\n\n"
        "We look forward to seeing you!\n\n"
        f"Thank you for choosing {settings.HOSPITAL_DISPLAY_NAME}! 🏥"
    )
